"""Continuous rendering: redraw the graph whenever the repository changes.

A single loop owns the renderer process. Filesystem events from watchdog only
arm a debounce deadline; the loop redraws once the repository has been quiet
for ``debounce`` seconds, so a commit touching many files causes one redraw.
"""
import logging
import queue
import subprocess
import time
from typing import BinaryIO, Callable, Literal, TypeAlias

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .errors import (
    ReferenceResolutionError,
    StoreAccessError,
    SubprocessError,
    WriteError,
)

logger = logging.getLogger(__name__)

DEFAULT_RENDERER = ('dot', '-Tx11')
DEBOUNCE_SECONDS = 1.0

State: TypeAlias = Literal['idle', 'rendering', 'debouncing', 'terminating']
EventKind: TypeAlias = Literal['trigger', 'notify', 'shutdown']

# open/close events are left out: reading the store must not cause a redraw
WATCHED_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


class Coordinator:
    def __init__(
        self,
        render: Callable[[BinaryIO], None],
        command=DEFAULT_RENDERER,
        debounce=DEBOUNCE_SECONDS,
        popen=subprocess.Popen,
    ):
        self.render = render
        self.command = list(command)
        self.debounce = debounce
        self.popen = popen
        self.state: State = 'idle'
        self.process = None
        self.renders = 0
        self._events: queue.Queue[tuple[EventKind, object]] = queue.Queue()
        self._deadline: float | None = None

    def trigger(self) -> None:
        self._events.put(('trigger', None))

    def notify(self, event=None) -> None:
        self._events.put(('notify', event))

    def shutdown(self) -> None:
        self._events.put(('shutdown', None))

    def run(self) -> None:
        """Process events until ``shutdown`` is received."""
        while True:
            timeout = None
            if self._deadline is not None:
                timeout = max(0.0, self._deadline - time.monotonic())

            try:
                kind, event = self._events.get(timeout=timeout)
            except queue.Empty:
                self._deadline = None
                self._render()
                continue

            if kind == 'notify':
                logger.debug('change: %s', event)
                self._deadline = time.monotonic() + self.debounce
                self.state = 'debouncing'
            elif kind == 'trigger':
                self._render()
            elif kind == 'shutdown':
                self.close()
                return

    def close(self) -> None:
        self.state = 'terminating'
        self._stop_renderer()

    def _render(self) -> None:
        self.state = 'rendering'
        try:
            self._stop_renderer()
            self._start_renderer()
        except SubprocessError as e:
            logger.error('%s', e)
        else:
            self._feed_renderer()
        finally:
            self.state = 'debouncing' if self._deadline is not None else 'idle'

    def _start_renderer(self) -> None:
        try:
            self.process = self.popen(self.command, stdin=subprocess.PIPE)
        except OSError as e:
            raise SubprocessError(f'cannot start renderer {" ".join(self.command)}: {e}') from e
        self.renders += 1
        logger.info('rendering snapshot %d', self.renders)

    def _feed_renderer(self) -> None:
        stdin = self.process.stdin
        try:
            self.render(stdin)
        except (StoreAccessError, ReferenceResolutionError) as e:
            logger.error('snapshot failed, waiting for the next change: %s', e)
        except WriteError as e:
            logger.warning('renderer stopped reading: %s', e)
        finally:
            try:
                stdin.close()
            except BrokenPipeError:
                pass  # renderer already gone; nothing left to flush

    def _stop_renderer(self) -> None:
        process, self.process = self.process, None
        if process is None:
            return
        if process.poll() is None:
            process.terminate()
        process.wait()


class ChangeHandler(FileSystemEventHandler):
    def __init__(self, coordinator: Coordinator):
        super().__init__()
        self.coordinator = coordinator

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in WATCHED_EVENTS:
            self.coordinator.notify(event)


def watch(path, render, command=DEFAULT_RENDERER, debounce=DEBOUNCE_SECONDS) -> None:
    """Render now and after every burst of changes below ``path``.

    Runs until interrupted; the renderer is always terminated on the way out.
    """
    coordinator = Coordinator(render, command=command, debounce=debounce)
    observer = Observer()
    observer.schedule(ChangeHandler(coordinator), path, recursive=True)

    coordinator.trigger()
    observer.start()
    logger.info('watching %s', path)
    try:
        coordinator.run()
    finally:
        observer.stop()
        observer.join()
        coordinator.close()

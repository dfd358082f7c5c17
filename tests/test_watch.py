"""Tests for the watch coordinator and the watchdog handler."""

from __future__ import annotations

import io
import threading
import time

import pytest
from watchdog.events import FileClosedEvent, FileCreatedEvent, FileModifiedEvent

from repograph.errors import StoreAccessError, WriteError
from repograph.watch import ChangeHandler, Coordinator


class RecordingPipe(io.BytesIO):
    def close(self):
        self.written = self.getvalue()
        super().close()


class FakeProcess:
    def __init__(self, launcher, command):
        self.launcher = launcher
        self.command = command
        self.stdin = RecordingPipe()
        self.returncode = None
        self.terminated = False

    def poll(self):
        return self.returncode

    def terminate(self):
        self.terminated = True
        self.returncode = -15

    def wait(self):
        if self.returncode is None:
            raise AssertionError('wait() on a process that was never told to stop')
        self.launcher.reap(self)
        return self.returncode


class FakeLauncher:
    """Stands in for subprocess.Popen and tracks how many renderers are alive."""

    def __init__(self, failures=0):
        self.failures = failures
        self.processes: list[FakeProcess] = []
        self.alive: set[int] = set()
        self.max_alive = 0
        self.lock = threading.Lock()

    def __call__(self, command, stdin=None):
        if self.failures:
            self.failures -= 1
            raise FileNotFoundError(command[0])
        process = FakeProcess(self, command)
        with self.lock:
            self.processes.append(process)
            self.alive.add(id(process))
            self.max_alive = max(self.max_alive, len(self.alive))
        return process

    def reap(self, process):
        with self.lock:
            self.alive.discard(id(process))


def write_graph(out):
    out.write(b'digraph G {\n}\n')


def run_in_thread(coordinator):
    thread = threading.Thread(target=coordinator.run, daemon=True)
    thread.start()
    return thread


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_each_trigger_replaces_the_renderer():
    launcher = FakeLauncher()
    coordinator = Coordinator(write_graph, command=['dot', '-Tx11'], popen=launcher)
    for _ in range(5):
        coordinator.trigger()
    coordinator.shutdown()
    coordinator.run()

    assert len(launcher.processes) == 5
    assert launcher.max_alive == 1
    assert launcher.alive == set()
    assert all(p.command == ['dot', '-Tx11'] for p in launcher.processes)
    assert all(p.stdin.written == b'digraph G {\n}\n' for p in launcher.processes)
    assert all(p.terminated for p in launcher.processes)
    assert coordinator.state == 'terminating'


def test_a_burst_of_notifications_renders_once():
    launcher = FakeLauncher()
    coordinator = Coordinator(write_graph, debounce=0.05, popen=launcher)
    thread = run_in_thread(coordinator)

    for _ in range(20):
        coordinator.notify(FileModifiedEvent('/repo/.git/index'))
    assert wait_for(lambda: len(launcher.processes) == 1)
    time.sleep(0.2)
    coordinator.shutdown()
    thread.join(timeout=2)

    assert not thread.is_alive()
    assert len(launcher.processes) == 1


def test_each_notification_pushes_the_deadline_back():
    launcher = FakeLauncher()
    coordinator = Coordinator(write_graph, debounce=0.3, popen=launcher)
    thread = run_in_thread(coordinator)

    for _ in range(5):
        coordinator.notify()
        time.sleep(0.1)
    assert launcher.processes == []
    assert coordinator.state == 'debouncing'

    assert wait_for(lambda: len(launcher.processes) == 1)
    coordinator.shutdown()
    thread.join(timeout=2)
    assert len(launcher.processes) == 1


def test_separate_bursts_render_separately():
    launcher = FakeLauncher()
    coordinator = Coordinator(write_graph, debounce=0.05, popen=launcher)
    thread = run_in_thread(coordinator)

    coordinator.notify()
    assert wait_for(lambda: len(launcher.processes) == 1)
    coordinator.notify()
    assert wait_for(lambda: len(launcher.processes) == 2)
    coordinator.shutdown()
    thread.join(timeout=2)

    assert launcher.max_alive == 1
    assert launcher.alive == set()


def test_store_errors_do_not_stop_the_loop(caplog):
    calls = []

    def flaky_render(out):
        calls.append(out)
        if len(calls) == 1:
            raise StoreAccessError('objects/ab is half written')
        write_graph(out)

    launcher = FakeLauncher()
    coordinator = Coordinator(flaky_render, popen=launcher)
    coordinator.trigger()
    coordinator.trigger()
    coordinator.shutdown()
    coordinator.run()

    assert len(launcher.processes) == 2
    assert launcher.processes[0].stdin.closed
    assert launcher.processes[1].stdin.written == b'digraph G {\n}\n'
    assert 'half written' in caplog.text


def test_renderer_that_fails_to_start_is_retried_next_time(caplog):
    launcher = FakeLauncher(failures=1)
    coordinator = Coordinator(write_graph, command=['no-such-renderer'], popen=launcher)
    coordinator.trigger()
    coordinator.trigger()
    coordinator.shutdown()
    coordinator.run()

    assert len(launcher.processes) == 1
    assert 'cannot start renderer no-such-renderer' in caplog.text


def test_renderer_that_stops_reading_abandons_the_cycle(caplog):
    def render(out):
        raise WriteError('cannot write graph: Broken pipe')

    launcher = FakeLauncher()
    coordinator = Coordinator(render, popen=launcher)
    coordinator.trigger()
    coordinator.trigger()
    coordinator.shutdown()
    coordinator.run()

    assert len(launcher.processes) == 2
    assert all(p.stdin.closed for p in launcher.processes)
    assert 'stopped reading' in caplog.text


def test_unexpected_errors_propagate():
    def render(out):
        raise ValueError('bug')

    launcher = FakeLauncher()
    coordinator = Coordinator(render, popen=launcher)
    coordinator.trigger()
    with pytest.raises(ValueError):
        coordinator.run()
    assert launcher.processes[0].stdin.closed


def test_renderer_that_already_exited_is_reaped_without_signal():
    launcher = FakeLauncher()
    coordinator = Coordinator(write_graph, popen=launcher)
    coordinator.trigger()
    coordinator.shutdown()
    coordinator.run()
    first = launcher.processes[0]

    first.terminated = False
    first.returncode = 0
    coordinator.process = first
    coordinator.close()

    assert not first.terminated
    assert coordinator.process is None


def test_close_is_idempotent():
    coordinator = Coordinator(write_graph, popen=FakeLauncher())
    coordinator.close()
    coordinator.close()
    assert coordinator.state == 'terminating'


def test_handler_forwards_only_changes():
    received = []

    class Sink:
        def notify(self, event):
            received.append(event)

    handler = ChangeHandler(Sink())
    created = FileCreatedEvent('/repo/.git/objects/ab/cdef')
    modified = FileModifiedEvent('/repo/.git/HEAD')
    handler.dispatch(created)
    handler.dispatch(modified)
    handler.dispatch(FileClosedEvent('/repo/.git/objects/ab/cdef'))

    assert received == [created, modified]

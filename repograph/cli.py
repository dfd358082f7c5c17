import argparse
import functools
import logging
import os
import shlex
import signal
import sys

from . import graph
from . import repo
from . import watch
from .errors import RepographError

logger = logging.getLogger(__name__)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )
    return args.func(args)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='repograph',
        description='Draw the objects and refs of a repository as a Graphviz digraph.',
    )
    parser.set_defaults(func=show)
    parser.add_argument('path', nargs='?',
                        help='repository to draw (default: discover from the current directory)')
    parser.add_argument('--watch', action='store_true',
                        help='redraw in a renderer window whenever the repository changes')
    parser.add_argument('--no-broken-head', dest='hide_broken_head', action='store_true',
                        help='hide HEAD when it points at something that does not exist')
    parser.add_argument('--renderer', type=shlex.split,
                        default=os.environ.get('REPOGRAPH_RENDERER', shlex.join(watch.DEFAULT_RENDERER)),
                        help='command that reads the graph on stdin in --watch mode (default: %(default)s)')
    parser.add_argument('--debounce', type=float, default=watch.DEBOUNCE_SECONDS,
                        help='seconds of quiet before redrawing (default: %(default)s)')
    parser.add_argument('-v', '--verbose', action='store_true')

    args = parser.parse_args(argv)
    if args.watch:
        args.func = watch_repo
    return args


def show(args):
    try:
        store, location = repo.discover(args.path)
        with store.change_git_dir(location):
            graph.render(store, sys.stdout.buffer, hide_broken_head=args.hide_broken_head)
    except RepographError as e:
        logger.error('%s', e)
        return 1
    return 0


def watch_repo(args):
    try:
        store, location = repo.discover(args.path)
    except RepographError as e:
        logger.error('%s', e)
        return 1

    # SIGTERM unwinds like Ctrl-C so the renderer is reaped on the way out
    signal.signal(signal.SIGTERM, signal.default_int_handler)
    render = functools.partial(graph.render, store, hide_broken_head=args.hide_broken_head)
    try:
        with store.change_git_dir(location):
            watch.watch(store.GIT_DIR, render, command=args.renderer, debounce=args.debounce)
    except KeyboardInterrupt:
        logger.info('interrupted')
    except RepographError as e:
        logger.error('%s', e)
        return 1
    return 0

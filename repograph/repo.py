import logging
import os
import subprocess
from types import ModuleType

from . import data, git
from .errors import StoreAccessError

logger = logging.getLogger(__name__)


def discover(path=None) -> tuple[ModuleType, str]:
    """Find the repository at (or, without a path, above) ``path``.

    Returns the store module to read it with and the location to pass to that
    module's ``change_git_dir``. ugit stores win over git when both exist.
    """
    if path is not None:
        path = os.path.abspath(path)
        if os.path.isdir(f'{path}/.ugit'):
            return data, path
        if os.path.basename(path) == '.ugit' and os.path.isdir(path):
            return data, os.path.dirname(path)
        return git, _git_dir(path)

    current = os.getcwd()
    while True:
        if os.path.isdir(f'{current}/.ugit'):
            return data, current
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return git, _git_dir(os.getcwd())


def _git_dir(path) -> str:
    try:
        proc = subprocess.run(
            ['git', '-C', path, 'rev-parse', '--absolute-git-dir'],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
        )
    except OSError as e:
        raise StoreAccessError(f'cannot run git: {e}') from e

    if proc.returncode != 0:
        raise StoreAccessError(f'no repository found at {path}')
    git_dir = proc.stdout.strip()
    logger.debug('using git repository %s', git_dir)
    return git_dir

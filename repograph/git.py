"""Read-only access to a real git repository through the ``git`` executable.

Mirrors the function set of :mod:`repograph.data` so either module can be
handed to the snapshot builder.
"""
import logging
import subprocess
from contextlib import contextmanager
from tempfile import TemporaryFile
from typing import Iterable, BinaryIO

from . import types
from .errors import ReferenceResolutionError, StoreAccessError
from .types import RefValue

logger = logging.getLogger(__name__)

GIT_DIR: str | None = None
HASH_SIZE = 20  # bytes per object id inside binary tree payloads

_HASH_SIZES = {'sha1': 20, 'sha256': 32}


@contextmanager
def change_git_dir(git_dir):
    global GIT_DIR, HASH_SIZE
    old = GIT_DIR, HASH_SIZE
    GIT_DIR = git_dir
    try:
        HASH_SIZE = _object_hash_size()
        yield
    finally:
        GIT_DIR, HASH_SIZE = old


def _command(*args) -> list[str]:
    return ['git', f'--git-dir={GIT_DIR}', *args]


def _run(*args) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            _command(*args),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors='replace',
            check=False,
        )
    except OSError as e:
        raise StoreAccessError(f'cannot run git: {e}') from e


def _object_hash_size() -> int:
    proc = _run('rev-parse', '--show-object-format')
    if proc.returncode != 0:
        raise StoreAccessError(f'{GIT_DIR} is not a git repository: {proc.stderr.strip()}')
    return _HASH_SIZES.get(proc.stdout.strip(), 20)


def iter_objects() -> Iterable[tuple[types.OID, str, bytes]]:
    with TemporaryFile() as err:
        try:
            proc = subprocess.Popen(
                _command('cat-file', '--batch-all-objects', '--batch', '--unordered'),
                stdout=subprocess.PIPE,
                stderr=err,
            )
        except OSError as e:
            raise StoreAccessError(f'cannot run git: {e}') from e

        with proc:
            yield from _read_batch(proc.stdout)

        if proc.returncode != 0:
            err.seek(0)
            message = err.read().decode(errors='replace').strip()
            raise StoreAccessError(f'git cat-file failed: {message}')


def _read_batch(stream: BinaryIO) -> Iterable[tuple[types.OID, str, bytes]]:
    while header := stream.readline():
        try:
            oid, type_, size = header.decode().split()
            size = int(size)
        except ValueError:
            raise StoreAccessError(f'unexpected cat-file header {header!r}') from None

        content = stream.read(size)
        if len(content) != size or stream.read(1) != b'\n':
            raise StoreAccessError(f'truncated object {oid}')
        yield oid, type_, content


def get_tree_entries(content: bytes) -> list[types.TreeEntry]:
    # <mode> SP <name> NUL <raw id>, repeated
    entries = []
    pos = 0
    try:
        while pos < len(content):
            space = content.index(b' ', pos)
            nul = content.index(b'\x00', space)
            end = nul + 1 + HASH_SIZE
            if end > len(content):
                raise ValueError('short object id')
            name = content[space + 1:nul].decode(errors='surrogateescape')
            entries.append(types.TreeEntry(oid=content[nul + 1:end].hex(), name=name))
            pos = end
    except ValueError as e:
        raise StoreAccessError(f'malformed tree: {e}') from e
    return entries


def get_commit(content: bytes) -> types.Commit:
    parents = []
    tree = None
    for line in content.decode(errors='replace').splitlines():
        if not line:
            break
        key, _, value = line.partition(' ')
        if key == 'tree':
            tree = value
        elif key == 'parent':
            parents.append(value)

    if tree is None:
        raise StoreAccessError('commit has no tree')
    return types.Commit(tree=tree, parents=parents)


def get_ref(ref, deref=True) -> RefValue:
    if not deref:
        proc = _run('symbolic-ref', '-q', ref)
        if proc.returncode == 0:
            return RefValue(symbolic=True, value=proc.stdout.strip())
        if proc.returncode != 1:
            raise ReferenceResolutionError(f'cannot read {ref}: {proc.stderr.strip()}')

    # without deref a detached HEAD is reported even when its object is missing
    revision = f'{ref}^{{object}}' if deref else ref
    proc = _run('rev-parse', '-q', '--verify', revision)
    if proc.returncode == 0:
        return RefValue(symbolic=False, value=proc.stdout.strip())
    return RefValue(symbolic=False, value=None)


def iter_refs(prefix='') -> Iterable[tuple[str, RefValue]]:
    proc = _run('for-each-ref', '--format=%(objectname) %(refname)')
    if proc.returncode != 0:
        raise ReferenceResolutionError(f'git for-each-ref failed: {proc.stderr.strip()}')

    for line in proc.stdout.splitlines():
        oid, _, refname = line.partition(' ')
        if refname.startswith(prefix):
            yield refname, RefValue(symbolic=False, value=oid)

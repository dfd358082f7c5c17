"""Read-only access to a ugit object store and its refs.

Objects live in ``objects/<oid>`` as ``<type>\\0<content>``, refs are plain
files under ``refs/`` and symbolic refs hold ``ref: <name>``.
"""
import itertools
import logging
import operator
import os
from contextlib import contextmanager
from typing import Iterable

from . import types
from .errors import ReferenceResolutionError, StoreAccessError
from .types import RefValue

logger = logging.getLogger(__name__)

GIT_DIR: str | None = None
MAX_SYMREF_DEPTH = 5


@contextmanager
def change_git_dir(new_dir):
    global GIT_DIR
    old_dir = GIT_DIR
    GIT_DIR = f'{new_dir}/.ugit'
    try:
        yield
    finally:
        GIT_DIR = old_dir


def iter_objects() -> Iterable[tuple[types.OID, str, bytes]]:
    objects_dir = f'{GIT_DIR}/objects'
    try:
        oids = sorted(os.listdir(objects_dir))
    except OSError as e:
        raise StoreAccessError(f'cannot list {objects_dir}: {e}') from e

    for oid in oids:
        type_, content = read_object(oid)
        yield oid, type_, content


def read_object(oid: types.OID) -> tuple[str, bytes]:
    try:
        with open(f'{GIT_DIR}/objects/{oid}', 'rb') as f:
            obj = f.read()
    except OSError as e:
        raise StoreAccessError(f'cannot read object {oid}: {e}') from e

    type_, sep, content = obj.partition(b'\x00')
    if not sep:
        raise StoreAccessError(f'object {oid} has no type header')
    return type_.decode(errors='replace'), content


def get_tree_entries(content: bytes) -> list[types.TreeEntry]:
    entries = []
    for entry in content.decode(errors='surrogateescape').splitlines():
        try:
            _, oid, name = entry.split(' ', 2)
        except ValueError:
            raise StoreAccessError(f'malformed tree entry {entry!r}') from None
        entries.append(types.TreeEntry(oid=oid, name=name))
    return entries


def get_commit(content: bytes) -> types.Commit:
    parents = []
    tree = None
    lines = iter(content.decode(errors='replace').splitlines())
    # headers end at the first empty line, the message follows
    for line in itertools.takewhile(operator.truth, lines):
        key, _, value = line.partition(' ')
        if key == 'tree':
            tree = value
        elif key == 'parent':
            parents.append(value)
        else:
            raise StoreAccessError(f'Unknown field {key}')

    if tree is None:
        raise StoreAccessError('commit has no tree')
    return types.Commit(tree=tree, parents=parents)


def get_ref(ref, deref=True) -> RefValue:
    return _get_ref_internal(ref, deref)[1]


def _get_ref_internal(ref: str, deref: bool, depth=0) -> tuple[str, RefValue]:
    if depth > MAX_SYMREF_DEPTH:
        raise ReferenceResolutionError(f'symbolic ref loop at {ref}')
    ref_path = f'{GIT_DIR}/{ref}'
    value = None
    try:
        if os.path.isfile(ref_path):
            with open(ref_path) as f:
                value = f.read().strip()
    except OSError as e:
        raise ReferenceResolutionError(f'cannot read {ref}: {e}') from e

    symbolic = bool(value) and value.startswith('ref:')
    if symbolic:
        value = value.split(':', 1)[1].strip()
        if deref:
            return _get_ref_internal(value, deref=True, depth=depth + 1)
    return ref, RefValue(symbolic=symbolic, value=value or None)


def iter_refs(prefix='', deref=True) -> Iterable[tuple[str, RefValue]]:
    refs = []
    for root, _, filenames in os.walk(f'{GIT_DIR}/refs/'):
        root = os.path.relpath(root, GIT_DIR).replace('\\', '/')
        refs.extend(f'{root}/{name}' for name in filenames)

    for refname in sorted(refs):
        if not refname.startswith(prefix):
            continue
        ref = get_ref(refname, deref=deref)
        if ref.value:
            yield refname, ref
        else:
            logger.debug('skipping dangling ref %s', refname)

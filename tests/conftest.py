"""Shared fixtures: on-disk ugit stores and an in-memory store double."""

from __future__ import annotations

from pathlib import Path

import pytest

from repograph import data
from repograph.types import Commit, RefValue, TreeEntry


class UgitRepo:
    """Writes objects and refs straight into a ``.ugit`` directory."""

    def __init__(self, root: Path):
        self.root = root
        self.git_dir = root / '.ugit'
        (self.git_dir / 'objects').mkdir(parents=True)

    def object(self, oid: str, type_: str, content: bytes = b'') -> str:
        (self.git_dir / 'objects' / oid).write_bytes(type_.encode() + b'\x00' + content)
        return oid

    def blob(self, oid: str, content: bytes = b'hello\n') -> str:
        return self.object(oid, 'blob', content)

    def tree(self, oid: str, entries: list[tuple[str, str, str]]) -> str:
        lines = ''.join(f'{type_} {entry_oid} {name}\n' for type_, entry_oid, name in entries)
        return self.object(oid, 'tree', lines.encode())

    def commit(self, oid: str, tree: str, parents=(), message='msg') -> str:
        headers = f'tree {tree}\n' + ''.join(f'parent {p}\n' for p in parents)
        return self.object(oid, 'commit', f'{headers}\n{message}\n'.encode())

    def ref(self, name: str, value: str, symbolic=False) -> None:
        path = self.git_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f'ref: {value}' if symbolic else value)


@pytest.fixture
def ugit_repo(tmp_path: Path):
    """An empty ugit store, selected as the current ``data`` repository."""
    repo = UgitRepo(tmp_path)
    with data.change_git_dir(str(tmp_path)):
        yield repo


class FakeStore:
    """In-memory store double; payloads are handed over already parsed."""

    def __init__(self, objects=(), refs=None, head=RefValue(symbolic=True, value='refs/heads/main')):
        self.objects = list(objects)
        self.refs = dict(refs or {})
        self.head = head

    def iter_objects(self):
        yield from self.objects

    def get_tree_entries(self, content):
        return [TreeEntry(oid, name) for oid, name in content]

    def get_commit(self, content):
        tree, parents = content
        return Commit(tree=tree, parents=list(parents))

    def iter_refs(self, prefix=''):
        for name, oid in self.refs.items():
            yield name, RefValue(symbolic=False, value=oid)

    def get_ref(self, ref, deref=True):
        assert ref == 'HEAD' and not deref
        return self.head


@pytest.fixture
def fake_store():
    return FakeStore

"""Graph nodes for everything a snapshot can hold.

Each node writes its own DOT statements through ``describe``; object ids are
cut to the snapshot's shorten length, ref names are written in full.
"""
from typing import BinaryIO, NamedTuple, TypeAlias

from .types import OID, RefName, RefValue, TreeEntry


def _quote(label: str) -> str:
    return label.replace('\\', '\\\\').replace('"', '\\"')


def _write(out: BinaryIO, line: str) -> None:
    out.write(line.encode(errors='surrogateescape') + b'\n')


class Blob(NamedTuple):
    oid: OID

    def describe(self, shorten: int, out: BinaryIO) -> None:
        _write(out, f'"{self.oid[:shorten]}" [shape=box,style=filled,fillcolor="#ddddff",color="#bbbbff"]')


class Tree(NamedTuple):
    oid: OID
    entries: list[TreeEntry]

    def describe(self, shorten: int, out: BinaryIO) -> None:
        oid = self.oid[:shorten]
        _write(out, f'"{oid}" [shape=oval,style=filled,fillcolor="#99ff99"]')
        for entry in self.entries:
            _write(out, f'"{oid}" -> "{entry.oid[:shorten]}" [label="{_quote(entry.name)}",fontcolor="#666666"]')


class Commit(NamedTuple):
    oid: OID
    tree: OID
    parents: list[OID]

    def describe(self, shorten: int, out: BinaryIO) -> None:
        oid = self.oid[:shorten]
        _write(out, f'"{oid}" [shape=hexagon,style=filled,fillcolor="#ffff99"]')
        _write(out, f'"{oid}" -> "{self.tree[:shorten]}"')
        for parent in self.parents:
            _write(out, f'"{oid}" -> "{parent[:shorten]}"')


class Reference(NamedTuple):
    name: RefName
    target: OID

    def describe(self, shorten: int, out: BinaryIO) -> None:
        name = _quote(self.name)
        _write(out, f'"{name}" [shape=box,style=filled,fillcolor="#9999ff"]')
        _write(out, f'"{name}" -> "{self.target[:shorten]}"')


class SymbolicReference(NamedTuple):
    """HEAD: points at a ref name when symbolic, else at an object id."""
    name: RefName
    ref: RefValue

    def describe(self, shorten: int, out: BinaryIO) -> None:
        name = _quote(self.name)
        target = _quote(self.ref.value) if self.ref.symbolic else self.ref.value[:shorten]
        _write(out, f'"{name}" [shape=box,style=filled,fillcolor="#ff9999"]')
        _write(out, f'"{name}" -> "{target}"')


Node: TypeAlias = Blob | Tree | Commit | Reference | SymbolicReference
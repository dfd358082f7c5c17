from typing import TypeAlias, NamedTuple

OID: TypeAlias = str  # hex object id
RefName: TypeAlias = str  # e.g. refs/heads/master


class TreeEntry(NamedTuple):
    oid: OID
    name: str


class Commit(NamedTuple):
    tree: OID
    parents: list[OID]


class RefValue(NamedTuple):
    symbolic: bool
    value: OID | RefName | None

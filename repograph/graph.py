from typing import BinaryIO

from . import shorten
from .errors import WriteError
from .snapshot import Snapshot, build_snapshot

HEADER = b'digraph G {\n'
TRAILER = b'}\n'


def dump(snapshot: Snapshot, shorten_len: int, out: BinaryIO) -> None:
    """Write ``snapshot`` as one DOT digraph.

    Statement order follows the snapshot and carries no meaning.
    """
    try:
        out.write(HEADER)
        for node in snapshot.values():
            node.describe(shorten_len, out)
        out.write(TRAILER)
        out.flush()
    except OSError as e:
        raise WriteError(f'cannot write graph: {e}') from e


def render(store, out: BinaryIO, hide_broken_head=False) -> None:
    snapshot = build_snapshot(store, hide_broken_head=hide_broken_head)
    dump(snapshot, shorten.resolve_length(snapshot.oids), out)

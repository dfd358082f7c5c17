import logging

from . import nodes
from .errors import ReferenceResolutionError
from .types import RefValue

logger = logging.getLogger(__name__)


class Snapshot(dict[str, nodes.Node]):
    """Display key -> node for one point-in-time read of the repository.

    Objects are keyed by id and refs by name. A ref whose name equals an object
    id replaces that object (last write wins); ``oids`` still lists every
    object that was read, so shortening is unaffected.
    """

    def __init__(self):
        super().__init__()
        self.oids = []

    def add_object(self, node: nodes.Blob | nodes.Tree | nodes.Commit) -> None:
        self[node.oid] = node
        self.oids.append(node.oid)


def build_snapshot(store, hide_broken_head=False) -> Snapshot:
    """Read every object and ref of ``store`` into a new Snapshot.

    ``store`` is a store module such as :mod:`repograph.data` or
    :mod:`repograph.git`, already pointed at a repository. Store and ref errors
    propagate untouched.
    """
    snapshot = Snapshot()

    for oid, type_, content in store.iter_objects():
        if type_ == 'blob':
            snapshot.add_object(nodes.Blob(oid))
        elif type_ == 'tree':
            snapshot.add_object(nodes.Tree(oid, store.get_tree_entries(content)))
        elif type_ == 'commit':
            commit_ = store.get_commit(content)
            snapshot.add_object(nodes.Commit(oid, commit_.tree, commit_.parents))
        else:
            logger.debug('skipping %s object %s', type_, oid)

    for refname, ref in store.iter_refs():
        snapshot[refname] = nodes.Reference(refname, ref.value)

    head = _resolve_head(store)
    if not hide_broken_head or head.value in snapshot:
        snapshot['HEAD'] = nodes.SymbolicReference('HEAD', head)
    else:
        logger.info('hiding broken HEAD -> %s', head.value)

    return snapshot


def _resolve_head(store) -> RefValue:
    head = store.get_ref('HEAD', deref=False)
    if not head.value:
        raise ReferenceResolutionError('HEAD does not point anywhere')
    return head

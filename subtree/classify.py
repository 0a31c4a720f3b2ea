import logging

from .errors import IntegrityError
from .types import OID, ObjectStore, Path

log = logging.getLogger(__name__)


def normalize_prefix(prefix: Path) -> Path:
    prefix = prefix.replace('\\', '/').rstrip('/')
    if not prefix:
        raise ValueError('prefix must name a directory')
    if prefix.startswith('/'):
        raise ValueError(f'prefix must be relative, got {prefix!r}')
    for part in prefix.split('/'):
        if part in ('', '.', '..', '.git'):
            raise ValueError(f'invalid prefix component {part!r} in {prefix!r}')
    return prefix


def subtree_for(store: ObjectStore, commit: OID, prefix: Path) -> OID | None:
    """Return the tree stored at ``prefix`` in ``commit``, or None.

    Submodule entries at ``prefix`` are not subtree content and yield None.
    """
    entry = store.tree_entry(store.tree(commit), prefix)
    if entry is None:
        return None
    if entry.kind == 'commit':
        log.debug('%s: %s is a submodule, ignoring', commit, prefix)
        return None
    if entry.kind != 'tree':
        raise IntegrityError(f'{commit}: tree entry {prefix} is of type {entry.kind}, '
                             f'expected tree or commit')
    return entry.oid


def tree_changed(store: ObjectStore, tree: OID, parents: list[OID]) -> bool:
    if len(parents) != 1:
        return True  # weird parents, consider it changed
    return store.tree(parents[0]) != tree

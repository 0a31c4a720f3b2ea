import logging

from . import trailers
from .types import OID, ObjectStore, Path, Signature

log = logging.getLogger(__name__)


def short(oid: OID) -> str:
    return oid[:7]


def squash_msg(store: ObjectStore, prefix: Path, old_sub: OID | None, new_sub: OID) -> str:
    if old_sub:
        lines = [f"Squashed '{prefix}/' changes from {short(old_sub)}..{short(new_sub)}", '']
        lines.extend(f'{short(e.oid)} {e.subject}'
                     for e in store.log_trailers(None, [f'{old_sub}..{new_sub}']))
        # the range need not be a fast-forward
        lines.extend(f'REVERT: {short(e.oid)} {e.subject}'
                     for e in store.log_trailers(None, [f'{new_sub}..{old_sub}']))
        message = '\n'.join(lines)
    else:
        message = f"Squashed '{prefix}/' content from commit {short(new_sub)}"

    return trailers.format_trailers(message, [
        (trailers.DIR, prefix),
        (trailers.SPLIT, new_sub),
    ])


def squash_commit(store: ObjectStore, prefix: Path, old_marker: OID | None,
                  old_sub: OID | None, new_sub: OID, author: Signature | None = None) -> OID:
    """Create one commit standing for the subtree history up to ``new_sub``.

    The commit holds ``new_sub``'s tree and continues ``old_marker``, the
    previous squash of ``prefix``, when there is one.
    """
    sub_commit = store.get_commit(new_sub)
    parents = [old_marker] if old_marker else []
    oid = store.create_commit(sub_commit.tree, parents, author, author,
                              squash_msg(store, prefix, old_sub, new_sub))
    log.debug('New squash commit: %s', oid)
    return oid

import logging
from typing import Literal, NamedTuple

from .types import OID, ObjectStore

log = logging.getLogger(__name__)


class ForcedNewCommit(NamedTuple):
    """A commit that had to be copied although a parent had the same tree."""
    rev: OID
    reason: Literal['diverged', 'history']
    identical: OID
    other: OID


class Synthesizer:
    """Writes the rewritten commits of a split, reusing parents when it can."""

    def __init__(self, store: ObjectStore, annotate=''):
        self.store = store
        self.annotate = annotate
        self.created = 0
        self.forced: list[ForcedNewCommit] = []

    def copy_or_skip(self, rev: OID, tree: OID, new_parents: list[OID]) -> OID:
        identical = None
        nonidentical = None
        copy = False
        parents = []

        for parent in new_parents:
            if self.store.tree(parent) == tree:
                # an identical parent could be used in place of this rev
                if identical is None:
                    identical = parent
                elif identical != parent:
                    base = self.store.common_ancestor(identical, parent)
                    if base == identical:
                        identical = parent
                    elif base != parent:
                        # neither contains the other; the commit must be copied
                        self._force(rev, 'diverged', identical, parent)
                        copy = True
            else:
                nonidentical = parent

            # both old parents may map to the same new parent
            if parent not in parents:
                parents.append(parent)

        if identical is not None and nonidentical is not None:
            if self.store.commit_count(f'{identical}..{nonidentical}'):
                # keep the history along the other branch
                self._force(rev, 'history', identical, nonidentical)
                copy = True

        if identical is not None and not copy:
            return identical
        return self.copy_commit(rev, tree, parents)

    def copy_commit(self, rev: OID, tree: OID, parents: list[OID]) -> OID:
        commit = self.store.get_commit(rev)
        new = self.store.create_commit(tree, parents, commit.author, commit.committer,
                                       self.annotate + commit.message)
        self.created += 1
        log.debug('copy_commit %s -> %s (tree %s, parents %s)', rev, new, tree, parents)
        return new

    def _force(self, rev, reason, identical, other):
        log.debug('%s: new commit forced (%s): %s vs %s', rev, reason, identical, other)
        self.forced.append(ForcedNewCommit(rev, reason, identical, other))

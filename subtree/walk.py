import logging
from typing import Iterable

from .cache import RevisionCache
from .classify import subtree_for
from .errors import IntegrityError
from .synth import Synthesizer
from .types import OID, ObjectStore, Path

log = logging.getLogger(__name__)


class Walker:
    """Rewrites the ancestry of a revision range into subtree-only commits.

    Commits normally arrive oldest first with their parents, but a parent
    can still be unmapped when the range was narrowed by earlier splits. Such
    parents are resolved on demand, before the commit that needs them.
    """

    def __init__(self, store: ObjectStore, cache: RevisionCache, prefix: Path,
                 synth: Synthesizer):
        self.store = store
        self.cache = cache
        self.prefix = prefix
        self.synth = synth
        self.revcount = 0
        self.extracount = 0

    def run(self, revs: Iterable[str], exclude: Iterable[OID] = ()):
        commits = list(self.store.iter_commits(revs, exclude))
        for rev, parents in commits:
            self.revcount += 1
            log.debug('%d/%d (%d) [%d]', self.revcount, len(commits),
                      self.synth.created, self.extracount)
            self.process(rev, parents)

    def process(self, rev: OID, parents: list[OID] | None = None):
        stack = [(rev, parents)]
        in_progress = set()

        while stack:
            rev, parents = stack[-1]
            if self.cache.known(rev):
                stack.pop()
                continue

            if parents is None:
                # reached out of order; fetch from the store
                parents = self.store.parents(rev)
                stack[-1] = (rev, parents)
                self.extracount += 1

            pending = [p for p in self.cache.missing(parents) if not self.cache.is_notree(p)]
            if pending:
                if rev in in_progress:
                    raise IntegrityError(f'{rev}: parents {pending} could not be resolved')
                in_progress.add(rev)
                for parent in reversed(pending):
                    if parent in in_progress:
                        raise IntegrityError(f'cycle in commit graph at {parent}')
                    log.debug('incorrect order: %s', parent)
                    stack.append((parent, None))
                continue

            stack.pop()
            in_progress.discard(rev)
            self._process_one(rev, parents)

    def _process_one(self, rev: OID, parents: list[OID]):
        log.debug('Processing commit: %s', rev)
        new_parents = self.cache.get(parents)
        tree = subtree_for(self.store, rev, self.prefix)

        if tree is None:
            self.cache.set_notree(rev)
            if new_parents:
                self.cache.set(rev, rev)
            return

        new_rev = self.synth.copy_or_skip(rev, tree, new_parents)
        log.debug('newrev is: %s', new_rev)
        self.cache.set(rev, new_rev)
        self.cache.set_latest(rev, new_rev)

import logging
from typing import Iterable, TypedDict

from typing_extensions import Unpack

from . import trailers
from .cache import RevisionCache
from .classify import normalize_prefix, subtree_for, tree_changed
from .errors import AmbiguousRevision, DirtyWorkingTree, NoNewRevisions, NotAncestor
from .locate import find_existing_splits, find_latest_squash
from .squash import squash_commit
from .synth import Synthesizer
from .types import OID, ObjectStore, Path
from .walk import Walker

log = logging.getLogger(__name__)


class SplitOptions(TypedDict, total=False):
    onto: str
    rejoin: bool
    ignore_joins: bool
    annotate: str
    branch: str
    message: str


def _revs(revs: str | Iterable[str]) -> list[str]:
    return [revs] if isinstance(revs, str) else list(revs)


def resolve_one(store: ObjectStore, rev: str) -> OID:
    include, exclude = store.resolve_range([rev])
    if len(include) != 1 or exclude:
        raise AmbiguousRevision(f"'{rev}' does not refer to exactly one revision")
    return include[0]


def is_ancestor_of(store: ObjectStore, commit_: OID, maybe_ancestor: OID) -> bool:
    return store.common_ancestor(commit_, maybe_ancestor) == maybe_ancestor


def map_old_to_new(cache: RevisionCache, oid: OID):
    """The rewritten commit for ``oid``, NOTREE, or None if never seen."""
    return cache.lookup(oid)


def rejoin_msg(prefix: Path, latest_old: OID, latest_new: OID, message: str | None = None) -> str:
    message = message or f"Split '{prefix}/' into commit '{latest_new}'"
    return trailers.format_trailers(message, [
        (trailers.DIR, prefix),
        (trailers.MAINLINE, latest_old),
        (trailers.SPLIT, latest_new),
    ])


def _walk(store: ObjectStore, prefix: Path, revs: list[str], cache: RevisionCache,
          onto: str | None = None, ignore_joins=False, annotate='') -> Synthesizer:
    if onto:
        log.debug('Reading history for --onto=%s...', onto)
        # the 'onto' history is already just the subdir
        for rev, _ in store.iter_commits([onto]):
            cache.set(rev, rev)

    exclude = find_existing_splits(store, cache, prefix, revs, ignore_joins=ignore_joins)

    synth = Synthesizer(store, annotate=annotate)
    walker = Walker(store, cache, prefix, synth)
    walker.run(revs, exclude)
    log.debug('split of %s/: %d commits walked, %d created, %d resolved out of order',
              prefix, walker.revcount, synth.created, walker.extracount)
    return synth


def split(store: ObjectStore, prefix: Path, revs: str | Iterable[str] = 'HEAD',
          cache: RevisionCache | None = None, **options: Unpack[SplitOptions]) -> OID:
    """Extract the history of ``prefix`` as a standalone commit graph.

    Returns the newest rewritten commit. Pass a ``cache`` to inspect the
    old-to-new mapping afterwards with :func:`map_old_to_new`.
    """
    prefix = normalize_prefix(prefix)
    revs = _revs(revs)
    cache = RevisionCache() if cache is None else cache

    if options.get('rejoin') and not store.is_clean():
        raise DirtyWorkingTree('Working tree has modifications.  Cannot rejoin.')

    synth = _walk(store, prefix, revs, cache, onto=options.get('onto'),
                  ignore_joins=options.get('ignore_joins', False),
                  annotate=options.get('annotate', ''))

    latest_new = cache.latest_new
    if latest_new is None:
        raise NoNewRevisions('No new revisions were found')
    if not synth.created and latest_new in cache.recovered:
        raise NoNewRevisions(f'No new revisions were found since split {latest_new}')

    branch = options.get('branch')
    branch_ref = f'refs/heads/{branch}' if branch else None
    current = store.get_ref(branch_ref) if branch_ref else None
    if current and not is_ancestor_of(store, latest_new, current):
        raise NotAncestor(f"Branch '{branch}' is not an ancestor of commit '{latest_new}'.")

    if options.get('rejoin'):
        rejoin(store, prefix, cache.latest_old, latest_new, options.get('message'))

    if branch_ref:
        store.update_ref(branch_ref, latest_new, 'subtree split')
        log.info("%s branch '%s'", 'Updated' if current else 'Created', branch)

    return latest_new


def rejoin(store: ObjectStore, prefix: Path, latest_old: OID, latest_new: OID,
           message: str | None = None) -> OID:
    """Record ``latest_new`` as merged into HEAD, keeping HEAD's tree."""
    log.debug('Merging split branch into HEAD...')
    head = store.resolve('HEAD')
    oid = store.create_commit(store.tree(head), [head, latest_new], None, None,
                              rejoin_msg(prefix, latest_old, latest_new, message))
    store.update_ref('HEAD', oid, 'subtree rejoin')
    return oid


def subtree_commit(store: ObjectStore, prefix: Path, rev: OID) -> OID | None:
    """The split commit standing for ``rev``, or None if it lacks ``prefix``."""
    if subtree_for(store, rev, prefix) is None:
        return None
    cache = RevisionCache()
    _walk(store, prefix, [rev], cache)
    return cache.get([rev])[0]


def squash(store: ObjectStore, prefix: Path, revs: str | Iterable[str]) -> OID:
    """Collapse subtree history into a single commit.

    ``A..B`` squashes the commits between ``A`` and ``B``; a lone ``B``
    continues from the newest squash of ``prefix`` reachable from HEAD.
    Mainline revisions holding ``prefix`` are split first, so the squash
    carries only the directory's content. Revisions without it are taken
    to be subtree history already.
    """
    prefix = normalize_prefix(prefix)
    include, exclude = store.resolve_range(_revs(revs))
    if len(include) != 1 or len(exclude) > 1:
        raise AmbiguousRevision(f'{revs!r} must name one revision or one A..B range')

    latest = find_latest_squash(store, prefix) if store.get_ref('HEAD') else None
    old_marker, old_sub = latest or (None, None)

    if subtree_for(store, include[0], prefix) is None:
        new_sub = include[0]
        if exclude:
            old_sub = exclude[0]
    else:
        log.debug('Splitting %s before squashing...', include[0])
        new_sub = subtree_commit(store, prefix, include[0])
        if exclude:
            old_sub = subtree_commit(store, prefix, exclude[0])

    if old_sub == new_sub:
        raise NoNewRevisions(f'Subtree is already at commit {new_sub}.')
    if old_marker and not tree_changed(store, store.tree(new_sub), [old_marker]):
        raise NoNewRevisions(f"Squash of '{prefix}/' at commit {new_sub} "
                             f"leaves its tree unchanged.")
    oid = squash_commit(store, prefix, old_marker, old_sub, new_sub)
    log.info("Squashed '%s/' into %s", prefix, oid)
    return oid

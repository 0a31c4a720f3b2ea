"""Recover the results of earlier splits, squashes and rejoins.

Every commit written by this tool for a directory carries
``git-subtree-dir`` and ``git-subtree-split`` trailers, and rejoins (and
adds) also carry ``git-subtree-mainline``. Reading them back lets a later
run reuse the old mapping instead of rewriting the whole history again.
"""
import logging
from typing import Iterable, Iterator

from . import trailers
from .cache import RevisionCache
from .errors import IntegrityError
from .types import OID, LogEntry, ObjectStore, Path

log = logging.getLogger(__name__)


def iter_subtree_commits(store: ObjectStore, prefix: Path, revs: Iterable[str],
                         ignore_joins=False) -> Iterator[LogEntry]:
    """Yield, newest first, the commits recording a split of ``prefix``."""
    if ignore_joins:
        pattern = f"Add '{prefix}/' from commit '"
    else:
        pattern = f'{trailers.DIR}: {prefix}'

    for entry in store.log_trailers(pattern, revs):
        if ignore_joins and not entry.subject.startswith(pattern):
            continue
        dirs = entry.trailers.get(trailers.DIR, [])
        if any(d.rstrip('/') == prefix for d in dirs):
            yield entry


def find_latest_squash(store: ObjectStore, prefix: Path,
                       revs: Iterable[str] = ('HEAD',)) -> tuple[OID, OID] | None:
    """Return ``(marker, subtree_commit)`` of the newest squash of ``prefix``.

    A rejoin records both a mainline and a split commit; its second parent
    stands in for the squash marker.
    """
    for entry in iter_subtree_commits(store, prefix, revs):
        sub = trailers.first(entry.trailers, trailers.SPLIT)
        if not sub:
            continue
        marker = entry.oid
        if trailers.first(entry.trailers, trailers.MAINLINE):
            parents = store.parents(entry.oid)
            if len(parents) < 2:
                raise IntegrityError(f'{entry.oid} records a rejoin but has no second parent')
            marker = parents[1]
        sub = store.resolve(sub)
        log.debug('Squash found: %s %s', marker, sub)
        return marker, sub
    return None


def _seed(cache: RevisionCache, old: OID, new: OID) -> bool:
    if old in cache and cache.get([old]) != [new]:
        log.debug('  %s already maps to %s, keeping it', old, cache.get([old])[0])
        return False
    cache.seed(old, new)
    return True


def find_existing_splits(store: ObjectStore, cache: RevisionCache, prefix: Path,
                         revs: Iterable[str], ignore_joins=False) -> list[OID]:
    """Seed ``cache`` from earlier runs and return the commits to exclude.

    The returned commits are the first parents of every recovered
    ``(mainline, split)`` pair: history already represented by the pair does
    not need to be walked again.
    """
    log.debug('Looking for prior splits...')
    exclude: list[OID] = []
    for entry in iter_subtree_commits(store, prefix, revs, ignore_joins=ignore_joins):
        main = trailers.first(entry.trailers, trailers.MAINLINE)
        sub = trailers.first(entry.trailers, trailers.SPLIT)
        if not sub:
            continue
        sub = store.resolve(sub)

        if not main:
            # squash commits refer to a subtree
            log.debug('  Squash: %s from %s', entry.oid, sub)
            _seed(cache, entry.oid, sub)
            continue

        log.debug('  Prior: %s -> %s', main, sub)
        _seed(cache, main, sub)
        _seed(cache, sub, sub)
        for oid in (main, sub):
            for parent in store.parents(oid)[:1]:
                if parent not in exclude:
                    exclude.append(parent)
    return exclude

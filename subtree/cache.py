import logging
from typing import Iterable

from .errors import IntegrityError
from .types import NOTREE, OID

log = logging.getLogger(__name__)


class RevisionCache:
    """Maps original commits to their rewritten counterparts for one run.

    A commit can also be flagged NOTREE when its tree holds nothing under the
    split directory. A NOTREE commit may still map to itself when it links
    subtree commits through mainline history.
    """

    def __init__(self):
        self._map: dict[OID, OID] = {}
        self._notree: set[OID] = set()
        self.recovered: set[OID] = set()
        self.latest_old: OID | None = None
        self.latest_new: OID | None = None

    def __contains__(self, oid):
        return oid in self._map

    def __len__(self):
        return len(self._map)

    def get(self, oids: Iterable[OID]) -> list[OID]:
        return [self._map[oid] for oid in oids if oid in self._map]

    def missing(self, oids: Iterable[OID]) -> list[OID]:
        return [oid for oid in oids if oid not in self._map]

    def set(self, old: OID, new: OID) -> None:
        current = self._map.get(old)
        if current is not None and current != new:
            raise IntegrityError(f'{old} already maps to {current}, refusing to remap to {new}')
        log.debug('cache: %s -> %s', old, new)
        self._map[old] = new

    def seed(self, old: OID, new: OID) -> None:
        """Record a mapping recovered from an earlier split."""
        self.set(old, new)
        self.recovered.add(new)

    def set_notree(self, old: OID) -> None:
        self._notree.add(old)

    def is_notree(self, old: OID) -> bool:
        return old in self._notree

    def known(self, old: OID) -> bool:
        return old in self._map or old in self._notree

    def lookup(self, old: OID):
        if old in self._map:
            return self._map[old]
        if old in self._notree:
            return NOTREE
        return None

    def set_latest(self, old: OID, new: OID) -> None:
        self.latest_old = old
        self.latest_new = new

from typing import Iterable, Iterator, Literal, NamedTuple, Protocol, TypeAlias

Path: TypeAlias = str  # a '/' separated path inside a tree
OID: TypeAlias = str  # hash
ObjectType: TypeAlias = Literal['blob', 'tree', 'commit']
Trailers: TypeAlias = dict[str, list[str]]


class _NoTree:
    __slots__ = ()

    def __repr__(self):
        return 'NOTREE'

    def __bool__(self):
        return False


NOTREE = _NoTree()  # "this commit has no representation in the target subtree"


class Signature(NamedTuple):
    name: str
    email: str
    date: str  # raw '<epoch> <tz>'


class Commit(NamedTuple):
    tree: OID
    parents: list[OID]
    message: str
    author: Signature
    committer: Signature


class TreeEntry(NamedTuple):
    kind: ObjectType
    oid: OID


class LogEntry(NamedTuple):
    oid: OID
    subject: str
    trailers: Trailers


class ObjectStore(Protocol):
    def resolve(self, rev: str) -> OID: ...

    def resolve_range(self, revs: Iterable[str]) -> tuple[list[OID], list[OID]]: ...

    def parents(self, oid: OID) -> list[OID]: ...

    def tree(self, oid: OID) -> OID: ...

    def get_commit(self, oid: OID) -> Commit: ...

    def tree_entry(self, tree: OID, path: Path) -> TreeEntry | None: ...

    def create_commit(self, tree: OID, parents: list[OID], author: Signature | None,
                      committer: Signature | None, message: str) -> OID: ...

    def common_ancestor(self, a: OID, b: OID) -> OID | None: ...

    def commit_count(self, range_: str) -> int: ...

    def iter_commits(self, revs: Iterable[str],
                     exclude: Iterable[OID] = ()) -> Iterator[tuple[OID, list[OID]]]: ...

    def log_trailers(self, pattern: str | None, revs: Iterable[str]) -> Iterator[LogEntry]: ...

    def get_ref(self, name: str) -> OID | None: ...

    def update_ref(self, name: str, oid: OID, message: str = '') -> None: ...

    def is_clean(self) -> bool: ...

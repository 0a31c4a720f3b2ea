class SubtreeError(Exception):
    """Base class for failures that abort a split, squash or rejoin."""


class IntegrityError(SubtreeError):
    """The store handed back an object that breaks its own contract."""


class AmbiguousRevision(SubtreeError):
    """A revision expression did not name exactly one revision."""


class NoNewRevisions(SubtreeError):
    pass


class NotFound(SubtreeError):
    pass


class DirtyWorkingTree(SubtreeError):
    pass


class NotAncestor(SubtreeError):
    """Updating a branch would not be a fast-forward."""


class StoreError(SubtreeError):
    """A store command failed."""

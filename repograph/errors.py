class RepographError(Exception):
    """Base class for every error repograph reports."""


class StoreAccessError(RepographError):
    """Enumerating or reading the object store failed."""


class ReferenceResolutionError(RepographError):
    """A reference (usually HEAD) could not be resolved."""


class ShorteningError(RepographError):
    """The object ids cannot be shortened consistently."""


class SubprocessError(RepographError):
    """The renderer could not be started or stopped."""


class WriteError(RepographError):
    """The graph sink stopped accepting output."""

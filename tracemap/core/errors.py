class TracemapError(Exception):
    """Base exception for tracemap errors."""


class OverlapError(TracemapError):
    """Raised when two live regions, or two mappings, would alias."""


class AlreadyDestroyedError(TracemapError):
    """Raised when destroying a region whose lifespan is already closed."""


class StaleRegionError(TracemapError):
    """Raised when a referenced region no longer exists or is not alive."""


class StaleBlockError(TracemapError):
    """Raised when a referenced static block left its program catalog."""


class CardinalityMismatchError(TracemapError):
    """Describes a module group whose regions and blocks cannot be paired."""


class ModuleKeyError(TracemapError):
    """Describes a region name from which no module key could be extracted."""


class NoMatchingImageError(TracemapError):
    """Describes a module group that does not belong to the candidate program."""


class TransactionError(TracemapError):
    """Raised for misuse of scoped transactions or the undo/redo history."""


class TraceFormatError(TracemapError):
    """Raised when a trace file cannot be parsed."""

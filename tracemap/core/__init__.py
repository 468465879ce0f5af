from .address import DEFAULT_SPACE, AddressRange, AddressSet, Lifespan, address_str
from .errors import (
    AlreadyDestroyedError,
    CardinalityMismatchError,
    ModuleKeyError,
    NoMatchingImageError,
    OverlapError,
    StaleBlockError,
    StaleRegionError,
    TraceFormatError,
    TracemapError,
    TransactionError,
)
from .permissions import RegionFlags

__all__ = [
    "DEFAULT_SPACE",
    "AddressRange",
    "AddressSet",
    "Lifespan",
    "address_str",
    "AlreadyDestroyedError",
    "CardinalityMismatchError",
    "ModuleKeyError",
    "NoMatchingImageError",
    "OverlapError",
    "StaleBlockError",
    "StaleRegionError",
    "TraceFormatError",
    "TracemapError",
    "TransactionError",
    "RegionFlags",
]

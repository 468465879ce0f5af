from .mappings import StaticMapping, StaticMappingManager
from .store import RegionHandle, RegionStore, TraceRegion
from .trace import ListenerHandle, Trace, TraceChanged, TraceConfig
from .transaction import ChangeEvent, ChangeKind, History, Transaction

__all__ = [
    "StaticMapping",
    "StaticMappingManager",
    "RegionHandle",
    "RegionStore",
    "TraceRegion",
    "ListenerHandle",
    "Trace",
    "TraceChanged",
    "TraceConfig",
    "ChangeEvent",
    "ChangeKind",
    "History",
    "Transaction",
]

from .controller import NavigationRequest, RegionsController, RegionTableColumn
from .debounce import DebounceState, Debouncer, timer_scheduler
from .manager import Coordinates, TraceManager
from .regions import RegionRow, RegionsViewModel, ViewConfig

__all__ = [
    "NavigationRequest",
    "RegionsController",
    "RegionTableColumn",
    "DebounceState",
    "Debouncer",
    "timer_scheduler",
    "Coordinates",
    "TraceManager",
    "RegionRow",
    "RegionsViewModel",
    "ViewConfig",
]

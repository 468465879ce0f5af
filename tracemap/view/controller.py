from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set

from redlog import field, get_logger

from ..core.address import AddressRange, AddressSet
from ..mapping.commit import CommitResult, MappingCommit
from ..mapping.proposal import ProposalEngine, RegionMapProposal, map_regions_enabled
from ..program.image import ProgramImage
from ..trace.store import RegionHandle, TraceRegion
from ..trace.trace import ListenerHandle, Trace
from .debounce import Scheduler
from .manager import TraceManager
from .regions import RegionRow, RegionsViewModel, ViewConfig


class RegionTableColumn(Enum):
    NAME = 0
    LIFESPAN = 1
    START = 2
    END = 3
    LENGTH = 4
    READ = 5
    WRITE = 6
    EXECUTE = 7


@dataclass(frozen=True)
class NavigationRequest:
    trace: Trace
    snap: int
    address: int


NavigationListener = Callable[[NavigationRequest], None]


class RegionsController:
    """
    The Regions Controller (Logic)

    Turns row selection and clicks on the regions table into region sets,
    address selections and navigation requests, and drives the map regions
    action against the associated program image.
    """

    def __init__(
        self,
        manager: TraceManager,
        config: Optional[ViewConfig] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.manager = manager
        self.view = RegionsViewModel(config, scheduler)
        self.program: Optional[ProgramImage] = None
        self.log = get_logger("tracemap.controller")

        self._selected: Set[RegionHandle] = set()
        self._navigation_listeners: Dict[int, NavigationListener] = {}
        self._listener_ids = itertools.count(1)

        manager.add_listener(self._coordinates_activated)
        self.view.attach(manager)

    @property
    def trace(self) -> Optional[Trace]:
        return self.view.trace

    def set_program(self, program: Optional[ProgramImage]) -> None:
        self.program = program

    def _coordinates_activated(self, coordinates) -> None:
        if coordinates.trace is not self.view.trace:
            self._selected.clear()

    # selection

    def set_selected_regions(self, regions: Iterable[RegionHandle]) -> None:
        self._selected = set(regions)

    def selected_rows(self) -> List[RegionRow]:
        return [row for row in self.view.rows if row.handle in self._selected]

    def selected_regions(self) -> List[TraceRegion]:
        """Selected regions that are alive at the view's snap, from committed state."""

        trace = self.trace
        if trace is None:
            return []
        snap = self.view.snap
        found = (trace.memory.get_committed(handle) for handle in sorted(self._selected))
        return [region for region in found if region is not None and region.is_alive(snap)]

    # navigation

    def add_navigation_listener(self, callback: NavigationListener) -> ListenerHandle:
        handle = ListenerHandle(next(self._listener_ids))
        self._navigation_listeners[handle.listener_id] = callback
        return handle

    def remove_navigation_listener(self, handle: ListenerHandle) -> None:
        self._navigation_listeners.pop(handle.listener_id, None)

    def navigate(self, row: RegionRow, column: RegionTableColumn) -> Optional[NavigationRequest]:
        """Handle an activation (double click) of a table cell."""

        if self.trace is None:
            return None
        if column == RegionTableColumn.START:
            address = row.min_address
        elif column == RegionTableColumn.END:
            address = row.max_address
        else:
            return None

        request = NavigationRequest(self.trace, self.view.snap, address)
        self.log.dbg("navigate", field("address", f"0x{address:x}"))
        for callback in list(self._navigation_listeners.values()):
            callback(request)
        return request

    # select addresses / select rows

    @property
    def select_addresses_enabled(self) -> bool:
        return bool(self.selected_rows())

    def select_addresses(self) -> AddressSet:
        return AddressSet(row.range for row in self.selected_rows())

    @property
    def select_rows_enabled(self) -> bool:
        return self.trace is not None

    def select_rows(self, ranges: Iterable[AddressRange]) -> List[RegionRow]:
        """Select the rows whose ranges intersect the given address selection."""

        selection = AddressSet(ranges)
        rows = [row for row in self.view.rows if selection.intersects(row.range)]
        self._selected = {row.handle for row in rows}
        return rows

    # map regions

    @property
    def map_regions_enabled(self) -> bool:
        return map_regions_enabled(self.selected_regions(), self.program)

    def propose_mapping(self) -> RegionMapProposal:
        if self.trace is None or self.program is None:
            raise ValueError("mapping regions requires an active trace and a program")
        engine = ProposalEngine(self.trace)
        return engine.propose(
            [region.handle for region in self.selected_regions()],
            self.program,
            snap=self.view.snap,
        )

    def commit_mapping(self, proposal: RegionMapProposal) -> CommitResult:
        return MappingCommit(proposal.trace).commit_proposal(proposal, snap=self.view.snap)

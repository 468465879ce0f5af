"""
headless regions table: a debounced projection of the active trace's regions
at the current snap
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from redlog import field, get_logger

from ..core.address import AddressRange, Lifespan
from ..core.permissions import RegionFlags
from ..trace.store import RegionHandle, TraceRegion
from ..trace.trace import ListenerHandle, Trace, TraceChanged
from .debounce import DebounceState, Debouncer, Scheduler
from .manager import Coordinates, TraceManager


@dataclass
class ViewConfig:
    debounce_ms: int = 100


@dataclass(frozen=True)
class RegionRow:
    handle: RegionHandle
    name: str
    range: AddressRange
    lifespan: Lifespan
    flags: RegionFlags

    @classmethod
    def from_region(cls, region: TraceRegion) -> "RegionRow":
        return cls(
            handle=region.handle,
            name=region.name,
            range=region.range,
            lifespan=region.lifespan,
            flags=region.flags,
        )

    @property
    def min_address(self) -> int:
        return self.range.min

    @property
    def max_address(self) -> int:
        return self.range.max

    @property
    def length(self) -> int:
        return self.range.length

    @property
    def created_snap(self) -> int:
        return self.lifespan.start

    @property
    def destroyed_snap(self) -> Union[int, str]:
        return "" if self.lifespan.end is None else self.lifespan.end

    @property
    def lifespan_text(self) -> str:
        return str(self.lifespan)

    @property
    def read(self) -> bool:
        return bool(self.flags & RegionFlags.READ)

    @property
    def write(self) -> bool:
        return bool(self.flags & RegionFlags.WRITE)

    @property
    def execute(self) -> bool:
        return bool(self.flags & RegionFlags.EXECUTE)


RowsListener = Callable[[List[RegionRow]], None]


class RegionsViewModel:
    """Row set of the active trace's regions alive at the current snap."""

    def __init__(
        self, config: Optional[ViewConfig] = None, scheduler: Optional[Scheduler] = None
    ):
        self.config = config or ViewConfig()
        self.log = get_logger("tracemap.view")
        self._lock = threading.Lock()
        self._publish_lock = threading.RLock()
        self._trace: Optional[Trace] = None
        self._trace_listener: Optional[ListenerHandle] = None
        self._snap = 0
        self._rows: List[RegionRow] = []
        self._refresh_count = 0
        self._generation = 0
        self._rows_listeners: Dict[int, RowsListener] = {}
        self._listener_ids = itertools.count(1)
        self._debouncer = Debouncer(self._refresh, self.config.debounce_ms, scheduler)

    # inputs

    def attach(self, manager: TraceManager) -> ListenerHandle:
        handle = manager.add_listener(self.coordinates_activated)
        self.coordinates_activated(manager.current)
        return handle

    def coordinates_activated(self, coordinates: Coordinates) -> None:
        trace = coordinates.trace
        if trace is not self._trace:
            self._switch_trace(trace)
        with self._lock:
            self._snap = coordinates.snap

        if trace is None:
            self._debouncer.cancel()
            self._clear()
            return
        self._debouncer.trigger()

    def _switch_trace(self, trace: Optional[Trace]) -> None:
        if self._trace is not None and self._trace_listener is not None:
            self._trace.remove_listener(self._trace_listener)
        with self._lock:
            self._trace = trace
            self._generation += 1
        self._trace_listener = None
        if trace is not None:
            self._trace_listener = trace.add_listener(self._trace_changed)
        self.log.dbg("view trace", field("trace", trace.name if trace else None))

    def _trace_changed(self, batch: TraceChanged) -> None:
        if batch.trace is self._trace and batch.regions_changed:
            self._debouncer.trigger()

    # outputs

    @property
    def trace(self) -> Optional[Trace]:
        return self._trace

    @property
    def snap(self) -> int:
        return self._snap

    @property
    def rows(self) -> List[RegionRow]:
        with self._lock:
            return list(self._rows)

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    @property
    def state(self) -> DebounceState:
        return self._debouncer.state

    def row_for(self, handle: RegionHandle) -> Optional[RegionRow]:
        for row in self.rows:
            if row.handle == handle:
                return row
        return None

    def settle(self) -> None:
        """Run any pending refresh now, until no refresh is pending."""

        while self._debouncer.flush():
            pass

    def add_rows_listener(self, callback: RowsListener) -> ListenerHandle:
        handle = ListenerHandle(next(self._listener_ids))
        self._rows_listeners[handle.listener_id] = callback
        return handle

    def remove_rows_listener(self, handle: ListenerHandle) -> None:
        self._rows_listeners.pop(handle.listener_id, None)

    # refresh

    def _refresh(self) -> None:
        with self._lock:
            trace, snap, generation = self._trace, self._snap, self._generation
        if trace is None:
            return
        regions = trace.memory.regions_at(snap, committed=True)
        rows = [RegionRow.from_region(region) for region in regions]
        if not self._publish(rows, generation):
            self.log.dbg("dropped refresh of inactive trace", field("trace", trace.name))
            return
        self.log.dbg(
            "refreshed regions",
            field("trace", trace.name),
            field("snap", snap),
            field("rows", len(rows)),
        )

    def _clear(self) -> None:
        with self._publish_lock:
            with self._lock:
                self._generation += 1
            self._publish([])

    def _publish(self, rows: List[RegionRow], generation: Optional[int] = None) -> bool:
        """Swap in a row set; a refresh started before a trace switch publishes nothing."""

        with self._publish_lock:
            with self._lock:
                if generation is not None and generation != self._generation:
                    return False
                self._rows = rows
                if generation is not None:
                    self._refresh_count += 1
            for callback in list(self._rows_listeners.values()):
                try:
                    callback(list(rows))
                except Exception as exc:  # pylint: disable=broad-except
                    self.log.err(f"rows listener failed: {exc}", field("rows", len(rows)))
            return True

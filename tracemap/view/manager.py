from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from redlog import field, get_logger

from ..trace.trace import ListenerHandle, Trace


@dataclass(frozen=True)
class Coordinates:
    """The active trace (or none) and the current snap."""

    trace: Optional[Trace]
    snap: int = 0


ActivationListener = Callable[[Coordinates], None]


class TraceManager:
    """Tracks open traces and broadcasts activation changes."""

    def __init__(self):
        self._open: List[Trace] = []
        self._current = Coordinates(None, 0)
        self._listeners: Dict[int, ActivationListener] = {}
        self._listener_ids = itertools.count(1)
        self.log = get_logger("tracemap.manager")

    @property
    def open_traces(self) -> List[Trace]:
        return list(self._open)

    @property
    def current(self) -> Coordinates:
        return self._current

    @property
    def current_trace(self) -> Optional[Trace]:
        return self._current.trace

    @property
    def current_snap(self) -> int:
        return self._current.snap

    def open_trace(self, trace: Trace) -> None:
        if trace not in self._open:
            self._open.append(trace)
            self.log.dbg("opened trace", field("trace", trace.name))

    def close_trace(self, trace: Trace) -> None:
        if trace not in self._open:
            return
        self._open.remove(trace)
        self.log.dbg("closed trace", field("trace", trace.name))
        if self._current.trace is trace:
            self._activate(Coordinates(None, 0))

    def activate_trace(self, trace: Optional[Trace], snap: Optional[int] = None) -> None:
        if trace is None:
            self._activate(Coordinates(None, 0))
            return
        self.open_trace(trace)
        if snap is None:
            snap = self._current.snap if self._current.trace is trace else 0
        self._activate(Coordinates(trace, snap))

    def activate_snap(self, snap: int) -> None:
        if self._current.trace is None:
            raise ValueError("no trace is active")
        self._activate(Coordinates(self._current.trace, snap))

    def add_listener(self, callback: ActivationListener) -> ListenerHandle:
        handle = ListenerHandle(next(self._listener_ids))
        self._listeners[handle.listener_id] = callback
        return handle

    def remove_listener(self, handle: ListenerHandle) -> None:
        self._listeners.pop(handle.listener_id, None)

    def _activate(self, coordinates: Coordinates) -> None:
        self._current = coordinates
        name = coordinates.trace.name if coordinates.trace else None
        self.log.dbg("activated", field("trace", name), field("snap", coordinates.snap))
        for callback in list(self._listeners.values()):
            try:
                callback(coordinates)
            except Exception as exc:  # pylint: disable=broad-except
                self.log.err(
                    f"activation listener failed: {exc}",
                    field("trace", name),
                    field("snap", coordinates.snap),
                )

from __future__ import annotations

import itertools
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional

from redlog import field, get_logger

from ..core.address import DEFAULT_SPACE, AddressRange
from ..core.errors import TransactionError
from .mappings import StaticMappingManager
from .store import RegionStore
from .transaction import (
    ChangeEvent,
    ChangeKind,
    History,
    Transaction,
    apply_changes,
    net_events,
)


@dataclass
class TraceConfig:
    history_limit: int = 100
    default_space: str = DEFAULT_SPACE


@dataclass(frozen=True)
class TraceChanged:
    """One batch of net changes delivered to trace listeners."""

    trace: "Trace"
    origin: str
    description: str
    events: List[ChangeEvent]

    def for_table(self, table: str) -> List[ChangeEvent]:
        return [event for event in self.events if event.table == table]

    @property
    def regions_changed(self) -> bool:
        return any(event.table == RegionStore.name for event in self.events)


@dataclass(frozen=True)
class ListenerHandle:
    listener_id: int


TraceListener = Callable[[TraceChanged], None]

_trace_ids = itertools.count(1)


class Trace:
    """A recorded execution session: regions, static mappings and history."""

    def __init__(self, name: str, config: Optional[TraceConfig] = None):
        self.name = name
        self.config = config or TraceConfig()
        self.trace_id = next(_trace_ids)
        self.log = get_logger("tracemap.trace")

        self.history = History(limit=self.config.history_limit)
        self.memory = RegionStore(self)
        self.static_mappings = StaticMappingManager(self)

        self._write_lock = threading.Lock()
        self._active: Optional[Transaction] = None
        self._owner: Optional[int] = None
        self._listeners: Dict[int, TraceListener] = {}
        self._listener_ids = itertools.count(1)

    def __repr__(self) -> str:
        return (
            f"Trace(name={self.name!r}, regions={len(self.memory)}, "
            f"mappings={len(self.static_mappings)})"
        )

    def range(self, start: int, end: int) -> AddressRange:
        return AddressRange(start, end, self.config.default_space)

    # transactions

    @contextmanager
    def transaction(self, description: str = "") -> Iterator[Transaction]:
        """Open a scoped transaction; exiting normally commits it."""

        if self._owner == threading.get_ident():
            raise TransactionError(
                f"transaction {self._active.description!r} already open on this thread"
            )

        with self._write_lock:
            txn = Transaction(self, description)
            self._active = txn
            self._owner = threading.get_ident()
            try:
                yield txn
            except BaseException:
                txn.abort()
                self._finish(txn)
                self.log.dbg(
                    "transaction aborted by error", field("description", description)
                )
                raise
            batch = self._finish(txn)

        if batch is not None:
            self._notify(batch)

    def _finish(self, txn: Transaction) -> Optional[TraceChanged]:
        self._active = None
        self._owner = None
        if txn.aborted:
            self.log.dbg("transaction aborted", field("description", txn.description))
            return None

        command = txn._publish()
        if command is None:
            return None
        self.history.push(command)
        events = net_events(command.changes)
        self.log.dbg(
            "transaction committed",
            field("description", txn.description),
            field("changes", len(command.changes)),
        )
        if not events:
            return None
        return TraceChanged(self, "commit", txn.description, events)

    def _owned_transaction(self) -> Optional[Transaction]:
        txn = self._active
        if txn is not None and self._owner == threading.get_ident():
            return txn
        return None

    def _require_transaction(self) -> Transaction:
        txn = self._owned_transaction()
        if txn is None:
            raise TransactionError("modification requires an open transaction")
        return txn

    @property
    def in_transaction(self) -> bool:
        return self._active is not None

    # undo / redo

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    @property
    def undo_description(self) -> Optional[str]:
        return self.history.undo_description

    @property
    def redo_description(self) -> Optional[str]:
        return self.history.redo_description

    def undo(self) -> None:
        self._replay("undo")

    def redo(self) -> None:
        self._replay("redo")

    def _replay(self, origin: str) -> None:
        if self._owner == threading.get_ident():
            raise TransactionError(f"cannot {origin} inside a transaction")

        with self._write_lock:
            if origin == "undo":
                command = self.history.pop_undo()
                changes = command.inverse_changes()
            else:
                command = self.history.pop_redo()
                changes = list(command.changes)
            apply_changes(changes)

        self.log.info(origin, field("trace", self.name), field("command", command.description))
        events = net_events(changes)
        if events:
            self._notify(TraceChanged(self, origin, command.description, events))

    # listeners

    def add_listener(self, callback: TraceListener) -> ListenerHandle:
        handle = ListenerHandle(next(self._listener_ids))
        self._listeners[handle.listener_id] = callback
        return handle

    def remove_listener(self, handle: ListenerHandle) -> None:
        self._listeners.pop(handle.listener_id, None)

    def _notify(self, batch: TraceChanged) -> None:
        for callback in list(self._listeners.values()):
            try:
                callback(batch)
            except Exception as exc:  # pylint: disable=broad-except
                self.log.err(
                    f"trace listener failed: {exc}",
                    field("trace", self.name),
                    field("origin", batch.origin),
                )


__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "ListenerHandle",
    "Trace",
    "TraceChanged",
    "TraceConfig",
]

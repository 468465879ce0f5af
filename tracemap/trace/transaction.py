"""
scoped transactions and the undo/redo command log shared by all trace tables

a transaction copies each table it touches on first write and records every
change as a reversible (before, after) pair; commit swaps the copies in and
files the changes as one composite command in the trace history
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Deque, Dict, Iterable, List, Optional, Tuple

from ..core.errors import TransactionError

if TYPE_CHECKING:
    from .trace import Trace


class ChangeKind(Enum):
    ADDED = "added"
    CHANGED = "changed"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeEvent:
    kind: ChangeKind
    table: str
    key: int
    old: Any = None
    new: Any = None


@dataclass(frozen=True)
class Change:
    table: "RecordTable"
    key: int
    before: Any
    after: Any

    def inverse(self) -> "Change":
        return Change(self.table, self.key, self.after, self.before)


@dataclass(frozen=True)
class Command:
    """One committed transaction, kept as its list of reversible changes."""

    description: str
    changes: Tuple[Change, ...]

    def inverse_changes(self) -> List[Change]:
        return [change.inverse() for change in reversed(self.changes)]


def net_events(changes: Iterable[Change]) -> List[ChangeEvent]:
    """Collapse a change sequence into one event per touched record."""

    first: Dict[Tuple[str, int], Change] = {}
    last: Dict[Tuple[str, int], Change] = {}
    for change in changes:
        ident = (change.table.name, change.key)
        first.setdefault(ident, change)
        last[ident] = change

    events: List[ChangeEvent] = []
    for ident, head in first.items():
        before = head.before
        after = last[ident].after
        if before == after:
            continue
        if before is None:
            kind = ChangeKind.ADDED
        elif after is None:
            kind = ChangeKind.REMOVED
        else:
            kind = ChangeKind.CHANGED
        events.append(ChangeEvent(kind, ident[0], ident[1], before, after))
    return events


class RecordTable:
    """Keyed table of immutable records owned by a trace."""

    name = "records"

    def __init__(self, trace: "Trace"):
        self._trace = trace
        self._committed: Dict[int, Any] = {}
        self._next_key = 1

    @property
    def trace(self) -> "Trace":
        return self._trace

    def _records(self) -> Dict[int, Any]:
        txn = self._trace._owned_transaction()
        if txn is not None:
            return txn.view(self)
        return self._committed

    def _committed_records(self) -> Dict[int, Any]:
        return self._committed

    def _allocate_key(self) -> int:
        key = self._next_key
        self._next_key += 1
        return key

    def _write(self, key: int, record: Any) -> None:
        txn = self._trace._require_transaction()
        txn.write(self, key, record)

    def _restore(self, records: Dict[int, Any]) -> None:
        self._committed = records
        if records:
            self._next_key = max(self._next_key, max(records) + 1)


class Transaction:
    """A bounded unit of work against one trace."""

    def __init__(self, trace: "Trace", description: str = ""):
        self.trace = trace
        self.description = description
        self._working: Dict[RecordTable, Dict[int, Any]] = {}
        self._changes: List[Change] = []
        self._aborted = False

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def changes(self) -> Tuple[Change, ...]:
        return tuple(self._changes)

    def abort(self) -> None:
        """Discard every tentative effect; leaving the scope then commits nothing."""
        self._aborted = True
        self._working.clear()
        self._changes.clear()

    def view(self, table: RecordTable) -> Dict[int, Any]:
        working = self._working.get(table)
        if working is None:
            return table._committed_records()
        return working

    def write(self, table: RecordTable, key: int, record: Any) -> None:
        if self._aborted:
            raise TransactionError("transaction was aborted")
        working = self._working.get(table)
        if working is None:
            working = dict(table._committed_records())
            self._working[table] = working
        before = working.get(key)
        if record is None:
            working.pop(key, None)
        else:
            working[key] = record
        self._changes.append(Change(table, key, before, record))

    def _publish(self) -> Optional[Command]:
        for table, working in self._working.items():
            table._committed = working
        if not self._changes:
            return None
        return Command(self.description, tuple(self._changes))


@dataclass
class History:
    """Undo/redo stacks of committed commands."""

    limit: int = 100
    _undo: Deque[Command] = field(default_factory=deque)
    _redo: List[Command] = field(default_factory=list)

    def push(self, command: Command) -> None:
        self._undo.append(command)
        while self.limit > 0 and len(self._undo) > self.limit:
            self._undo.popleft()
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_description(self) -> Optional[str]:
        return self._undo[-1].description if self._undo else None

    @property
    def redo_description(self) -> Optional[str]:
        return self._redo[-1].description if self._redo else None

    def pop_undo(self) -> Command:
        if not self._undo:
            raise TransactionError("nothing to undo")
        command = self._undo.pop()
        self._redo.append(command)
        return command

    def pop_redo(self) -> Command:
        if not self._redo:
            raise TransactionError("nothing to redo")
        command = self._redo.pop()
        self._undo.append(command)
        return command

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()


def apply_changes(changes: Iterable[Change]) -> None:
    """Apply changes directly to committed tables (undo/redo path)."""

    staged: Dict[RecordTable, Dict[int, Any]] = {}
    for change in changes:
        records = staged.get(change.table)
        if records is None:
            records = dict(change.table._committed_records())
            staged[change.table] = records
        value = change.after
        if value is None:
            records.pop(change.key, None)
        else:
            records[change.key] = value
    for table, records in staged.items():
        table._committed = records

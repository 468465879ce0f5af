from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from redlog import field, get_logger

from ..core.address import AddressRange, Lifespan, address_str
from ..core.errors import OverlapError
from .transaction import RecordTable


@dataclass(frozen=True)
class StaticMapping:
    """Fixed-offset correspondence between trace and static addresses."""

    key: int
    trace_id: int
    trace_range: AddressRange
    lifespan: Lifespan
    program: str
    static_range: AddressRange

    def __post_init__(self) -> None:
        if self.trace_range.length != self.static_range.length:
            raise ValueError(
                f"mapping length mismatch: trace {self.trace_range.length:#x} "
                f"vs static {self.static_range.length:#x}"
            )

    @property
    def length(self) -> int:
        return self.trace_range.length

    @property
    def min_trace_address(self) -> int:
        return self.trace_range.min

    @property
    def static_address(self) -> str:
        return address_str(self.static_range.min, self.static_range.space)

    @property
    def offset(self) -> int:
        return self.static_range.min - self.trace_range.min

    def overlaps_trace(self, trace_range: AddressRange, lifespan: Lifespan) -> bool:
        return self.trace_range.intersects(trace_range) and self.lifespan.intersects(
            lifespan
        )

    def overlaps_static(
        self, program: str, static_range: AddressRange, lifespan: Lifespan
    ) -> bool:
        return (
            self.program == program
            and self.static_range.intersects(static_range)
            and self.lifespan.intersects(lifespan)
        )


class StaticMappingManager(RecordTable):
    """The static mappings recorded for one trace."""

    name = "mappings"

    def __init__(self, trace):
        super().__init__(trace)
        self.log = get_logger("tracemap.mappings")

    def add(
        self,
        trace_range: AddressRange,
        lifespan: Lifespan,
        program: str,
        static_range: AddressRange,
    ) -> StaticMapping:
        conflict = self.find_conflict(trace_range, lifespan, program, static_range)
        if conflict is not None:
            raise OverlapError(
                f"mapping {trace_range} -> {program}:{static_range} over {lifespan} "
                f"overlaps existing mapping {conflict.trace_range} -> "
                f"{conflict.program}:{conflict.static_range}"
            )

        key = self._allocate_key()
        mapping = StaticMapping(
            key=key,
            trace_id=self.trace.trace_id,
            trace_range=trace_range,
            lifespan=lifespan,
            program=program,
            static_range=static_range,
        )
        self._write(key, mapping)
        self.log.dbg(
            "added mapping",
            field("trace", str(trace_range)),
            field("program", program),
            field("static", str(static_range)),
            field("lifespan", str(lifespan)),
        )
        return mapping

    def find_conflict(
        self,
        trace_range: AddressRange,
        lifespan: Lifespan,
        program: str,
        static_range: AddressRange,
    ) -> Optional[StaticMapping]:
        for mapping in self.all_entries():
            if mapping.overlaps_trace(trace_range, lifespan):
                return mapping
            if mapping.overlaps_static(program, static_range, lifespan):
                return mapping
        return None

    def all_entries(self) -> List[StaticMapping]:
        return [self._records()[key] for key in sorted(self._records())]

    def find_containing(self, address: int, snap: int) -> Optional[StaticMapping]:
        for mapping in self.all_entries():
            if mapping.trace_range.contains(address) and mapping.lifespan.contains(snap):
                return mapping
        return None

    def to_static(self, address: int, snap: int) -> Optional[int]:
        mapping = self.find_containing(address, snap)
        if mapping is None:
            return None
        return address + mapping.offset

    def to_trace(self, program: str, address: int, snap: int) -> Optional[int]:
        for mapping in self.all_entries():
            if (
                mapping.program == program
                and mapping.static_range.contains(address)
                and mapping.lifespan.contains(snap)
            ):
                return address - mapping.offset
        return None

    def __len__(self) -> int:
        return len(self._records())

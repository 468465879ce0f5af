from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Set

from redlog import field, get_logger

from ..core.address import AddressRange, Lifespan
from ..core.errors import AlreadyDestroyedError, OverlapError, StaleRegionError
from ..core.permissions import RegionFlags
from .transaction import RecordTable


@dataclass(frozen=True, order=True)
class RegionHandle:
    """Stable reference to a region record inside its trace."""

    trace_id: int
    key: int


@dataclass(frozen=True)
class TraceRegion:
    key: int
    trace_id: int
    name: str
    range: AddressRange
    flags: RegionFlags
    lifespan: Lifespan

    @property
    def handle(self) -> RegionHandle:
        return RegionHandle(self.trace_id, self.key)

    @property
    def min_address(self) -> int:
        return self.range.min

    @property
    def max_address(self) -> int:
        return self.range.max

    @property
    def length(self) -> int:
        return self.range.length

    def is_alive(self, snap: int) -> bool:
        return self.lifespan.contains(snap)


def _by_address(region: TraceRegion):
    return (region.range.space, region.range.min, region.key)


class RegionStore(RecordTable):
    """Interval store of the memory regions of one trace."""

    name = "regions"

    def __init__(self, trace):
        super().__init__(trace)
        self.log = get_logger("tracemap.regions")

    def create(
        self,
        name: str,
        range: AddressRange,
        lifespan_start: int,
        flags: RegionFlags = RegionFlags.NONE,
        lifespan_end: Optional[int] = None,
    ) -> RegionHandle:
        lifespan = Lifespan(lifespan_start, lifespan_end)
        self._check_overlap(range, lifespan)

        key = self._allocate_key()
        region = TraceRegion(
            key=key,
            trace_id=self.trace.trace_id,
            name=name,
            range=range,
            flags=RegionFlags(flags),
            lifespan=lifespan,
        )
        self._write(key, region)
        self.log.dbg(
            "created region",
            field("name", name),
            field("range", str(range)),
            field("lifespan", str(lifespan)),
        )
        return region.handle

    def destroy(self, handle: RegionHandle, at_snap: int) -> TraceRegion:
        region = self._lookup(handle)
        if not region.lifespan.is_open:
            raise AlreadyDestroyedError(
                f"region {region.name!r} already destroyed at snap {region.lifespan.end}"
            )
        if at_snap < region.lifespan.start:
            raise ValueError(
                f"cannot destroy region {region.name!r} at snap {at_snap}, "
                f"it was created at snap {region.lifespan.start}"
            )
        destroyed = replace(region, lifespan=region.lifespan.closed_at(at_snap))
        self._write(region.key, destroyed)
        self.log.dbg(
            "destroyed region", field("name", region.name), field("snap", at_snap)
        )
        return destroyed

    def delete(self, handle: RegionHandle) -> None:
        region = self._lookup(handle)
        self._write(region.key, None)
        self.log.dbg("deleted region", field("name", region.name))

    def get(self, handle: RegionHandle) -> Optional[TraceRegion]:
        if handle.trace_id != self.trace.trace_id:
            return None
        return self._records().get(handle.key)

    def get_committed(self, handle: RegionHandle) -> Optional[TraceRegion]:
        if handle.trace_id != self.trace.trace_id:
            return None
        return self._committed_records().get(handle.key)

    def all_regions(self) -> List[TraceRegion]:
        return sorted(self._records().values(), key=_by_address)

    def query(self, at_snap: int) -> Set[RegionHandle]:
        return {region.handle for region in self._alive(self._records(), at_snap)}

    def query_committed(self, at_snap: int) -> Set[RegionHandle]:
        return {
            region.handle
            for region in self._alive(self._committed_records(), at_snap)
        }

    def regions_at(self, at_snap: int, committed: bool = False) -> List[TraceRegion]:
        records = self._committed_records() if committed else self._records()
        return sorted(self._alive(records, at_snap), key=_by_address)

    def intersecting(
        self, range: AddressRange, lifespan: Lifespan
    ) -> List[TraceRegion]:
        found = [
            region
            for region in self._records().values()
            if region.range.intersects(range) and region.lifespan.intersects(lifespan)
        ]
        return sorted(found, key=_by_address)

    def __len__(self) -> int:
        return len(self._records())

    @staticmethod
    def _alive(records, at_snap: int) -> List[TraceRegion]:
        return [region for region in records.values() if region.is_alive(at_snap)]

    def _lookup(self, handle: RegionHandle) -> TraceRegion:
        region = self.get(handle)
        if region is None:
            raise StaleRegionError(f"no such region: {handle}")
        return region

    def _check_overlap(self, range: AddressRange, lifespan: Lifespan) -> None:
        for existing in self.intersecting(range, lifespan):
            raise OverlapError(
                f"range {range} overlaps region {existing.name!r} "
                f"{existing.range} alive over {existing.lifespan}"
            )

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from typing import Iterable, List, Optional, Tuple

from redlog import field, get_logger

from ..core.address import AddressRange, Lifespan
from ..core.errors import OverlapError, StaleBlockError, StaleRegionError, TracemapError
from ..program.image import ProgramImage
from ..trace.mappings import StaticMapping
from ..trace.trace import Trace
from .proposal import RegionMapEntry, RegionMapProposal


@dataclass(frozen=True)
class CommitFailure:
    entry: RegionMapEntry
    error: TracemapError

    def __str__(self) -> str:
        return f"{self.entry.name}: {type(self.error).__name__}: {self.error}"


@dataclass
class CommitResult:
    mappings: List[StaticMapping] = dataclass_field(default_factory=list)
    failures: List[CommitFailure] = dataclass_field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def count(self) -> int:
        return len(self.mappings)


@dataclass(frozen=True)
class _Planned:
    entry: RegionMapEntry
    trace_range: AddressRange
    lifespan: Lifespan
    static_range: AddressRange


class MappingCommit:
    """Turns accepted region map entries into static mappings, all or nothing."""

    def __init__(self, trace: Trace):
        self.trace = trace
        self.log = get_logger("tracemap.commit")

    def commit_proposal(
        self, proposal: RegionMapProposal, snap: Optional[int] = None
    ) -> CommitResult:
        return self.commit(proposal.accepted(), proposal.program, snap)

    def commit(
        self,
        entries: Iterable[RegionMapEntry],
        program: ProgramImage,
        snap: Optional[int] = None,
    ) -> CommitResult:
        accepted = [entry for entry in entries if entry.block is not None]
        result = CommitResult()
        if not accepted:
            return result

        with self.trace.transaction(f"Map regions to {program.name}") as txn:
            planned: List[_Planned] = []
            for entry in accepted:
                try:
                    plan = self._plan(entry, program, snap)
                    self._check_overlap(plan, program, planned)
                except TracemapError as exc:
                    result.failures.append(CommitFailure(entry, exc))
                    continue
                planned.append(plan)

            if result.failures:
                txn.abort()
            else:
                for plan in planned:
                    mapping = self.trace.static_mappings.add(
                        plan.trace_range, plan.lifespan, program.name, plan.static_range
                    )
                    result.mappings.append(mapping)

        if result.ok:
            self.log.info(
                "committed mappings",
                field("trace", self.trace.name),
                field("program", program.name),
                field("count", result.count),
            )
        else:
            self.log.warn(
                "mapping commit rejected",
                field("trace", self.trace.name),
                field("failures", [str(failure) for failure in result.failures]),
            )
        return result

    def _plan(
        self, entry: RegionMapEntry, program: ProgramImage, snap: Optional[int]
    ) -> _Planned:
        region = self.trace.memory.get(entry.region)
        if region is None:
            raise StaleRegionError(f"region {entry.name!r} no longer exists")
        if snap is None:
            if not region.lifespan.is_open:
                raise StaleRegionError(
                    f"region {region.name!r} was destroyed at snap {region.lifespan.end}"
                )
        elif not region.is_alive(snap):
            raise StaleRegionError(f"region {region.name!r} is not alive at snap {snap}")
        block = entry.block
        if not program.contains(block):
            raise StaleBlockError(
                f"block {block.name!r} is no longer in program {program.name!r}"
            )

        length = min(region.range.length, block.range.length)
        return _Planned(
            entry=entry,
            trace_range=region.range.truncated(length),
            lifespan=region.lifespan,
            static_range=block.range.truncated(length),
        )

    def _check_overlap(
        self, plan: _Planned, program: ProgramImage, planned: List[_Planned]
    ) -> None:
        mappings = self.trace.static_mappings
        conflict = mappings.find_conflict(
            plan.trace_range, plan.lifespan, program.name, plan.static_range
        )
        if conflict is not None:
            raise OverlapError(
                f"{plan.trace_range} -> {program.name}:{plan.static_range} overlaps "
                f"existing mapping {conflict.trace_range} -> {conflict.static_address}"
            )
        for other in planned:
            clash = _clashes(plan, other)
            if clash:
                raise OverlapError(
                    f"{clash} range of {plan.entry.name!r} overlaps {other.entry.name!r} "
                    "in the same commit"
                )


def _clashes(plan: _Planned, other: _Planned) -> Optional[str]:
    if not plan.lifespan.intersects(other.lifespan):
        return None
    checks: Tuple[Tuple[str, AddressRange, AddressRange], ...] = (
        ("trace", plan.trace_range, other.trace_range),
        ("static", plan.static_range, other.static_range),
    )
    for label, mine, theirs in checks:
        if mine.intersects(theirs):
            return label
    return None

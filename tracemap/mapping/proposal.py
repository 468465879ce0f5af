from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from redlog import field, get_logger

from ..core.errors import (
    CardinalityMismatchError,
    ModuleKeyError,
    NoMatchingImageError,
    StaleRegionError,
    TracemapError,
)
from ..program.image import ProgramImage, StaticBlock
from ..trace.store import RegionHandle, TraceRegion
from ..trace.trace import Trace
from .modkey import ModuleKey, module_key, name_similarity, names_block


@dataclass(eq=False)
class RegionMapEntry:
    """A tentative pairing of one region with one static block (or none)."""

    region: RegionHandle
    record: TraceRegion
    block: Optional[StaticBlock] = None
    selected: bool = False
    score: float = 0.0
    reason: Optional[TracemapError] = None

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def block_name(self) -> str:
        return self.block.name if self.block else ""

    def __repr__(self) -> str:
        block = self.block.name if self.block else None
        return f"RegionMapEntry(region={self.record.name!r}, block={block!r})"


class RegionMapProposal:
    """An editable set of region map entries against one program image."""

    def __init__(self, trace: Trace, program: ProgramImage, entries: List[RegionMapEntry]):
        self.trace = trace
        self.program = program
        self._entries = list(entries)
        self.log = get_logger("tracemap.proposal")

    @property
    def entries(self) -> List[RegionMapEntry]:
        return list(self._entries)

    def __iter__(self) -> Iterator[RegionMapEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def entry_for(self, region: RegionHandle) -> Optional[RegionMapEntry]:
        for entry in self._entries:
            if entry.region == region:
                return entry
        return None

    def assign(self, entry: RegionMapEntry, block: Optional[StaticBlock]) -> None:
        """Reassign an entry; a displaced holder of the block is cleared and deselected."""

        self._check_entry(entry)
        if block is not None and not self.program.contains(block):
            raise ValueError(f"block {block.name!r} is not in program {self.program.name!r}")

        if block is not None:
            for other in self._entries:
                if other is not entry and other.block == block:
                    other.block = None
                    other.selected = False
                    other.score = 0.0
                    self.log.dbg(
                        "displaced entry",
                        field("region", other.name),
                        field("block", block.name),
                    )

        entry.block = block
        entry.selected = block is not None
        entry.score = 1.0 if block is not None else 0.0
        entry.reason = None

    def select(self, entry: RegionMapEntry, selected: bool = True) -> None:
        self._check_entry(entry)
        if selected and entry.block is None:
            raise ValueError(f"entry for {entry.name!r} has no block to select")
        entry.selected = selected

    def accepted(self) -> List[RegionMapEntry]:
        return [entry for entry in self._entries if entry.selected and entry.block is not None]

    def block_choices(self, entry: RegionMapEntry) -> List[StaticBlock]:
        self._check_entry(entry)
        blocks = self.program.blocks
        if entry.block is not None and entry.block in blocks:
            blocks.remove(entry.block)
            blocks.insert(0, entry.block)
        return blocks

    def _check_entry(self, entry: RegionMapEntry) -> None:
        if not any(entry is mine for mine in self._entries):
            raise ValueError(f"entry for {entry.name!r} is not part of this proposal")


def _entry_order(entry: RegionMapEntry):
    return (entry.record.name, entry.record.range.min, entry.record.key)


def map_regions_enabled(
    records: Iterable[TraceRegion], program: Optional[ProgramImage]
) -> bool:
    """Whether mapping the given regions to the program can propose anything."""

    if program is None or not len(program):
        return False
    for record in records:
        key = module_key(record.name)
        if key is not None and name_similarity(key.basename, program.name) > 0:
            return True
    return False


class ProposalEngine:
    """Proposes static blocks for trace regions, one block per region at most."""

    def __init__(self, trace: Trace):
        self.trace = trace
        self.log = get_logger("tracemap.proposal")

    def propose(
        self,
        regions: Iterable[RegionHandle],
        program: ProgramImage,
        snap: Optional[int] = None,
    ) -> RegionMapProposal:
        records = self._lookup_all(regions, snap)

        entries: Dict[int, RegionMapEntry] = {}
        groups: Dict[str, List[TraceRegion]] = {}
        keys: Dict[str, ModuleKey] = {}
        for record in records:
            key = module_key(record.name)
            if key is None:
                entries[record.key] = RegionMapEntry(
                    region=record.handle,
                    record=record,
                    reason=ModuleKeyError(f"no module key in region name {record.name!r}"),
                )
                continue
            groups.setdefault(key.path, []).append(record)
            keys.setdefault(key.path, key)

        taken: Set[int] = set()
        ordered_paths = sorted(
            groups, key=lambda path: (min(r.range.min for r in groups[path]), path)
        )
        for path in ordered_paths:
            for entry in self._pair_group(keys[path], groups[path], program, taken):
                entries[entry.record.key] = entry

        result = sorted(entries.values(), key=_entry_order)
        self.log.dbg(
            "proposed mapping",
            field("program", program.name),
            field("regions", len(result)),
            field("paired", sum(1 for entry in result if entry.block is not None)),
        )
        return RegionMapProposal(self.trace, program, result)

    def propose_single(
        self, region: RegionHandle, block: StaticBlock, program: ProgramImage
    ) -> RegionMapProposal:
        """Pair one region with a chosen block."""

        (record,) = self._lookup_all([region], None)
        if not program.contains(block):
            raise ValueError(f"block {block.name!r} is not in program {program.name!r}")
        entry = RegionMapEntry(
            region=record.handle, record=record, block=block, selected=True, score=1.0
        )
        return RegionMapProposal(self.trace, program, [entry])

    def _lookup_all(
        self, regions: Iterable[RegionHandle], snap: Optional[int]
    ) -> List[TraceRegion]:
        handles = sorted(set(regions))
        if not handles:
            raise ValueError("at least one region is required for a proposal")

        records: List[TraceRegion] = []
        for handle in handles:
            record = self.trace.memory.get(handle)
            if record is None:
                raise StaleRegionError(f"no such region: {handle}")
            if snap is not None and not record.is_alive(snap):
                raise StaleRegionError(
                    f"region {record.name!r} is not alive at snap {snap}"
                )
            records.append(record)
        return records

    def _pair_group(
        self,
        key: ModuleKey,
        group: List[TraceRegion],
        program: ProgramImage,
        taken: Set[int],
    ) -> List[RegionMapEntry]:
        regions = sorted(group, key=lambda r: (r.range.min, r.key))
        similarity = name_similarity(key.basename, program.name)
        if similarity <= 0 or not len(program):
            reason = NoMatchingImageError(
                f"module {key.basename!r} does not match program {program.name!r}"
            )
            return [
                RegionMapEntry(region=r.handle, record=r, reason=reason) for r in regions
            ]

        catalog: List[Tuple[int, StaticBlock]] = [
            (index, block)
            for index, block in enumerate(program.blocks)
            if index not in taken
        ]
        entries: List[RegionMapEntry] = []

        unpaired: List[TraceRegion] = []
        for region in regions:
            named = [
                (index, block)
                for index, block in catalog
                if names_block(region.name, block.name)
            ]
            if not named:
                unpaired.append(region)
                continue
            index, block = min(named, key=lambda ib: (ib[1].range.min, ib[0]))
            catalog.remove((index, block))
            taken.add(index)
            entries.append(self._paired(region, block, similarity))

        if not unpaired:
            return entries

        ranked = sorted(
            catalog,
            key=lambda ib: (
                -float(names_block(key.basename, ib[1].name)),
                ib[1].range.min,
                ib[0],
            ),
        )
        if len(ranked) != len(unpaired):
            reason = CardinalityMismatchError(
                f"module {key.basename!r} has {len(unpaired)} unpaired regions "
                f"but {len(ranked)} unassigned blocks remain in {program.name!r}"
            )
            self.log.dbg(
                "cardinality mismatch",
                field("module", key.path),
                field("regions", len(unpaired)),
                field("blocks", len(ranked)),
            )
            entries.extend(
                RegionMapEntry(region=r.handle, record=r, reason=reason) for r in unpaired
            )
            return entries

        for region, (index, block) in zip(unpaired, ranked):
            taken.add(index)
            entries.append(self._paired(region, block, similarity))
        return entries

    def _paired(
        self, region: TraceRegion, block: StaticBlock, score: float
    ) -> RegionMapEntry:
        self.log.dbg(
            "paired region",
            field("region", region.name),
            field("block", block.name),
            field("score", score),
        )
        return RegionMapEntry(
            region=region.handle,
            record=region,
            block=block,
            selected=True,
            score=score,
        )

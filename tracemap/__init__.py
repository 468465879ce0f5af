from __future__ import annotations

from typing import Iterable, Optional

from .core import AddressRange, AddressSet, Lifespan, RegionFlags
from .formats import TraceFile, load_trace, save_trace
from .mapping import (
    CommitResult,
    MappingCommit,
    ProposalEngine,
    RegionMapEntry,
    RegionMapProposal,
    map_regions_enabled,
    module_key,
)
from .program import ProgramImage, StaticBlock, load_program
from .trace import RegionHandle, StaticMapping, Trace, TraceConfig, TraceRegion
from .view import RegionsController, RegionsViewModel, TraceManager, ViewConfig


def propose_mapping(
    trace: Trace,
    regions: Iterable[RegionHandle],
    program: ProgramImage,
    snap: Optional[int] = None,
) -> RegionMapProposal:
    return ProposalEngine(trace).propose(regions, program, snap=snap)


def commit_mapping(
    proposal: RegionMapProposal, snap: Optional[int] = None
) -> CommitResult:
    return MappingCommit(proposal.trace).commit_proposal(proposal, snap=snap)


__all__ = [
    "AddressRange",
    "AddressSet",
    "Lifespan",
    "RegionFlags",
    "TraceFile",
    "load_trace",
    "save_trace",
    "CommitResult",
    "MappingCommit",
    "ProposalEngine",
    "RegionMapEntry",
    "RegionMapProposal",
    "map_regions_enabled",
    "module_key",
    "ProgramImage",
    "StaticBlock",
    "load_program",
    "RegionHandle",
    "StaticMapping",
    "Trace",
    "TraceConfig",
    "TraceRegion",
    "RegionsController",
    "RegionsViewModel",
    "TraceManager",
    "ViewConfig",
    "commit_mapping",
    "propose_mapping",
]

from .commit import CommitFailure, CommitResult, MappingCommit
from .modkey import ModuleKey, module_key, name_similarity, names_block
from .proposal import (
    ProposalEngine,
    RegionMapEntry,
    RegionMapProposal,
    map_regions_enabled,
)

__all__ = [
    "CommitFailure",
    "CommitResult",
    "MappingCommit",
    "ModuleKey",
    "module_key",
    "name_similarity",
    "names_block",
    "ProposalEngine",
    "RegionMapEntry",
    "RegionMapProposal",
    "map_regions_enabled",
]

"""
module key heuristic: recover the image path and load base embedded in a
region name, e.g. ``Memory[/bin/echo 0x55550000]`` -> ``("/bin/echo", 0x55550000)``
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_MODULE_PATTERN = re.compile(
    r"(?P<path>[^\s\[\]]+)\s+(?:0x)?(?P<base>[0-9a-fA-F]+)(?=[\s\]]|$)"
)


@dataclass(frozen=True, order=True)
class ModuleKey:
    path: str
    base: int

    @property
    def basename(self) -> str:
        return re.split(r"[/\\]", self.path)[-1]


def module_key(name: str) -> Optional[ModuleKey]:
    """Extract the module key from a region name, or None if there is none."""

    match = _MODULE_PATTERN.search(name or "")
    if not match:
        return None
    path = match.group("path")
    if not re.search(r"[^/\\]", path):
        return None
    return ModuleKey(path=path, base=int(match.group("base"), 16))


def _stem(name: str) -> str:
    return name.lower().split(".", 1)[0]


def name_similarity(module_name: str, program_name: str) -> float:
    """Score how well a module file name matches a program name."""

    a = module_name.strip().lower()
    b = program_name.strip().lower()
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if _stem(a) and _stem(a) == _stem(b):
        return 0.75
    return 0.0


def names_block(region_name: str, block_name: str) -> bool:
    """True when the region name mentions the block name as its own token."""

    if not block_name:
        return False
    pattern = rf"(?<![\w.]){re.escape(block_name)}(?![\w.])"
    return re.search(pattern, region_name, re.IGNORECASE) is not None

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

from ..core.address import AddressRange


@dataclass(frozen=True)
class StaticBlock:
    """A named address range of a statically analyzed program image."""

    name: str
    range: AddressRange
    program: str = field(default="", compare=False)

    @property
    def min_address(self) -> int:
        return self.range.min

    @property
    def length(self) -> int:
        return self.range.length


class ProgramImage:
    """Ordered catalog of the static blocks of one program image."""

    def __init__(self, name: str, blocks: Iterable[StaticBlock] = ()):
        self.name = name
        self._blocks: List[StaticBlock] = []
        for block in blocks:
            self.add_block(block.name, block.range)

    def __repr__(self) -> str:
        return f"ProgramImage(name={self.name!r}, blocks={len(self._blocks)})"

    @property
    def blocks(self) -> List[StaticBlock]:
        return list(self._blocks)

    def __iter__(self) -> Iterator[StaticBlock]:
        return iter(list(self._blocks))

    def __len__(self) -> int:
        return len(self._blocks)

    def add_block(self, name: str, range: AddressRange) -> StaticBlock:
        for existing in self._blocks:
            if existing.range.intersects(range):
                raise ValueError(
                    f"block {name!r} {range} overlaps block {existing.name!r} {existing.range}"
                )
        block = StaticBlock(name=name, range=range, program=self.name)
        self._blocks.append(block)
        return block

    def remove_block(self, block: StaticBlock) -> None:
        self._blocks = [b for b in self._blocks if b != block]

    def get_block(self, name: str) -> Optional[StaticBlock]:
        for block in self._blocks:
            if block.name == name:
                return block
        return None

    def index_of(self, block: StaticBlock) -> int:
        return self._blocks.index(block)

    def contains(self, block: Optional[StaticBlock]) -> bool:
        return block is not None and block in self._blocks

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

DEFAULT_SPACE = "ram"


def address_str(address: int, space: str = DEFAULT_SPACE) -> str:
    return f"{space}:{address:08x}"


@dataclass(frozen=True, order=True)
class AddressRange:
    """Closed address interval ``[min, max]`` inside one address space."""

    min: int
    max: int
    space: str = DEFAULT_SPACE

    def __post_init__(self) -> None:
        if self.min < 0:
            raise ValueError(f"negative address: 0x{self.min:x}")
        if self.min > self.max:
            raise ValueError(
                f"empty address range: 0x{self.min:x} > 0x{self.max:x}"
            )

    @classmethod
    def of_length(
        cls, start: int, length: int, space: str = DEFAULT_SPACE
    ) -> "AddressRange":
        if length <= 0:
            raise ValueError(f"range length must be positive, got {length}")
        return cls(start, start + length - 1, space)

    @property
    def length(self) -> int:
        return self.max - self.min + 1

    def contains(self, address: int) -> bool:
        return self.min <= address <= self.max

    def intersects(self, other: "AddressRange") -> bool:
        if self.space != other.space:
            return False
        return self.min <= other.max and other.min <= self.max

    def shifted(self, offset: int) -> "AddressRange":
        return AddressRange(self.min + offset, self.max + offset, self.space)

    def truncated(self, length: int) -> "AddressRange":
        return AddressRange.of_length(self.min, min(length, self.length), self.space)

    def __str__(self) -> str:
        return f"{self.space}:[{self.min:08x}, {self.max:08x}]"


@dataclass(frozen=True)
class Lifespan:
    """Half-open interval ``[start, end)`` of snaps; ``end=None`` is open-ended.

    ``start == end`` is an empty span: a record that existed at no snap.
    """

    start: int
    end: Optional[int] = None

    def __post_init__(self) -> None:
        if self.end is not None and self.end < self.start:
            raise ValueError(f"lifespan ends before it starts: [{self.start}, {self.end})")

    @classmethod
    def now_on(cls, snap: int) -> "Lifespan":
        return cls(snap)

    @property
    def is_open(self) -> bool:
        return self.end is None

    @property
    def is_empty(self) -> bool:
        return self.end is not None and self.end == self.start

    def contains(self, snap: int) -> bool:
        if snap < self.start:
            return False
        return self.end is None or snap < self.end

    def intersects(self, other: "Lifespan") -> bool:
        if self.is_empty or other.is_empty:
            return False
        if self.end is not None and self.end <= other.start:
            return False
        if other.end is not None and other.end <= self.start:
            return False
        return True

    def closed_at(self, snap: int) -> "Lifespan":
        return Lifespan(self.start, snap)

    def __str__(self) -> str:
        end = "+inf" if self.end is None else str(self.end)
        return f"[{self.start}, {end})"


class AddressSet:
    """Sorted union of address ranges, coalescing adjacent ranges."""

    def __init__(self, ranges: Iterable[AddressRange] = ()):
        self._ranges: List[AddressRange] = []
        for rng in ranges:
            self.add(rng)

    def add(self, rng: AddressRange) -> None:
        merged = rng
        kept: List[AddressRange] = []
        for existing in self._ranges:
            touching = existing.space == merged.space and (
                existing.min <= merged.max + 1 and merged.min <= existing.max + 1
            )
            if touching:
                merged = AddressRange(
                    min(existing.min, merged.min),
                    max(existing.max, merged.max),
                    merged.space,
                )
            else:
                kept.append(existing)
        kept.append(merged)
        self._ranges = sorted(kept, key=lambda r: (r.space, r.min))

    def intersects(self, rng: AddressRange) -> bool:
        return any(existing.intersects(rng) for existing in self._ranges)

    def __iter__(self) -> Iterator[AddressRange]:
        return iter(self._ranges)

    def __len__(self) -> int:
        return len(self._ranges)

    def __bool__(self) -> bool:
        return bool(self._ranges)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AddressSet):
            return NotImplemented
        return self._ranges == other._ranges

    def __repr__(self) -> str:
        return f"AddressSet({', '.join(str(r) for r in self._ranges)})"

from enum import IntFlag


class RegionFlags(IntFlag):
    NONE = 0
    READ = 0b001
    WRITE = 0b010
    EXECUTE = 0b100

    RW = READ | WRITE
    RX = READ | EXECUTE
    RWX = READ | WRITE | EXECUTE

    @classmethod
    def from_rwx(cls, read: bool, write: bool, execute: bool) -> "RegionFlags":
        flags = cls.NONE
        if read:
            flags |= cls.READ
        if write:
            flags |= cls.WRITE
        if execute:
            flags |= cls.EXECUTE
        return flags

    @classmethod
    def parse(cls, text: str) -> "RegionFlags":
        """Parse an ``rwx`` style string such as ``"r-x"`` or ``"rw"``."""

        key = text.strip().lower()
        unknown = set(key) - set("rwx-")
        if unknown:
            raise ValueError(f"invalid region flags: {text!r}")
        return cls.from_rwx("r" in key, "w" in key, "x" in key)

    def __str__(self) -> str:
        return "".join(
            (
                "r" if self & RegionFlags.READ else "-",
                "w" if self & RegionFlags.WRITE else "-",
                "x" if self & RegionFlags.EXECUTE else "-",
            )
        )

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import lief
from redlog import field, get_logger

from ..core.address import DEFAULT_SPACE, AddressRange
from .image import ProgramImage

log = get_logger("tracemap.program")


def load_program(
    path: str, name: Optional[str] = None, space: str = DEFAULT_SPACE
) -> ProgramImage:
    """Build a block catalog from the loadable sections of a binary."""

    binary_path = Path(path)
    if not binary_path.exists():
        raise FileNotFoundError(f"binary not found: {binary_path}")

    binary = lief.parse(str(binary_path))
    if not binary:
        raise ValueError(f"failed to parse binary: {binary_path}")

    image = ProgramImage(name or binary_path.name)
    for section_name, start, size in _extract_sections(binary):
        try:
            image.add_block(section_name, AddressRange.of_length(start, size, space))
        except ValueError as exc:
            log.warn(
                f"skipping section: {exc}",
                field("section", section_name),
                field("path", str(binary_path)),
            )

    log.dbg(
        "loaded program",
        field("name", image.name),
        field("blocks", len(image)),
    )
    return image


def _extract_sections(binary) -> List[Tuple[str, int, int]]:
    sections: List[Tuple[str, int, int]] = []
    for section in binary.abstract.sections:
        start = int(section.virtual_address)
        size = int(section.size)
        if size <= 0 or start <= 0:
            continue
        sections.append((section.name, start, size))
    return sorted(sections, key=lambda s: s[1])

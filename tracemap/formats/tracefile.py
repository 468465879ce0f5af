from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import msgpack
from redlog import field, get_logger

from ..core.address import DEFAULT_SPACE, AddressRange, Lifespan
from ..core.errors import TraceFormatError
from ..core.permissions import RegionFlags
from ..program.image import ProgramImage
from ..trace.mappings import StaticMapping
from ..trace.store import TraceRegion
from ..trace.trace import Trace, TraceConfig

FORMAT_NAME = "tracemap"
FORMAT_VERSION = 1

log = get_logger("tracemap.format")


@dataclass
class TraceFile:
    """A trace together with its current snap and known program images."""

    trace: Trace
    snap: int = 0
    programs: List[ProgramImage] = dataclass_field(default_factory=list)

    def program(self, name: str) -> Optional[ProgramImage]:
        for program in self.programs:
            if program.name == name:
                return program
        return None


def save_trace(trace_file: TraceFile, path: str) -> None:
    trace = trace_file.trace
    payload = {
        "format": FORMAT_NAME,
        "version": FORMAT_VERSION,
        "trace": {"name": trace.name, "snap": int(trace_file.snap)},
        "regions": [_pack_region(r) for r in trace.memory.all_regions()],
        "mappings": [_pack_mapping(m) for m in trace.static_mappings.all_entries()],
        "programs": [_pack_program(p) for p in trace_file.programs],
    }
    Path(path).write_bytes(msgpack.packb(payload, use_bin_type=True))
    log.dbg(
        "saved trace",
        field("path", str(path)),
        field("regions", len(payload["regions"])),
        field("mappings", len(payload["mappings"])),
    )


def load_trace(path: str, config: Optional[TraceConfig] = None) -> TraceFile:
    trace_path = Path(path)
    if not trace_path.exists():
        raise FileNotFoundError(f"trace file not found: {trace_path}")

    data = trace_path.read_bytes()
    if not data:
        raise TraceFormatError("trace file is empty")

    try:
        payload = msgpack.unpackb(data, raw=False, strict_map_key=False)
    except msgpack.exceptions.ExtraData as exc:
        raise TraceFormatError(f"trace file contains extra data: {exc}") from exc
    except Exception as exc:
        raise TraceFormatError(f"trace file parse error: {exc}") from exc

    if not isinstance(payload, dict):
        raise TraceFormatError("trace file payload is not a map")
    if payload.get("format") != FORMAT_NAME:
        raise TraceFormatError(f"not a tracemap file: {payload.get('format')!r}")
    required_keys = {"trace", "regions", "mappings", "programs"}
    missing = required_keys - set(payload.keys())
    if missing:
        raise TraceFormatError(f"trace file missing required keys: {sorted(missing)}")

    try:
        header = dict(payload["trace"])
        trace = Trace(str(header["name"]), config)
        regions = _unpack_regions(trace, payload["regions"])
        mappings = _unpack_mappings(trace, payload["mappings"])
        programs = [_unpack_program(entry) for entry in payload["programs"]]
        snap = int(header.get("snap", 0))
    except (KeyError, TypeError, ValueError) as exc:
        raise TraceFormatError(f"malformed trace file: {exc}") from exc

    trace.memory._restore({region.key: region for region in regions})
    trace.static_mappings._restore({mapping.key: mapping for mapping in mappings})
    log.dbg(
        "loaded trace",
        field("path", str(trace_path)),
        field("regions", len(regions)),
        field("mappings", len(mappings)),
    )
    return TraceFile(trace=trace, snap=snap, programs=programs)


def _pack_range(rng: AddressRange) -> Dict[str, Any]:
    return {"min": rng.min, "max": rng.max, "space": rng.space}


def _unpack_range(entry: Dict[str, Any]) -> AddressRange:
    return AddressRange(
        int(entry["min"]), int(entry["max"]), str(entry.get("space", DEFAULT_SPACE))
    )


def _pack_lifespan(lifespan: Lifespan) -> Dict[str, Any]:
    return {"start": lifespan.start, "end": lifespan.end}


def _unpack_lifespan(entry: Dict[str, Any]) -> Lifespan:
    end = entry.get("end")
    return Lifespan(int(entry["start"]), None if end is None else int(end))


def _pack_region(region: TraceRegion) -> Dict[str, Any]:
    return {
        "key": region.key,
        "name": region.name,
        "range": _pack_range(region.range),
        "flags": int(region.flags),
        "lifespan": _pack_lifespan(region.lifespan),
    }


def _unpack_regions(trace: Trace, raw: Iterable[Dict[str, Any]]) -> List[TraceRegion]:
    return [
        TraceRegion(
            key=int(entry["key"]),
            trace_id=trace.trace_id,
            name=str(entry["name"]),
            range=_unpack_range(entry["range"]),
            flags=RegionFlags(int(entry.get("flags", 0))),
            lifespan=_unpack_lifespan(entry["lifespan"]),
        )
        for entry in raw
    ]


def _pack_mapping(mapping: StaticMapping) -> Dict[str, Any]:
    return {
        "key": mapping.key,
        "trace_range": _pack_range(mapping.trace_range),
        "lifespan": _pack_lifespan(mapping.lifespan),
        "program": mapping.program,
        "static_range": _pack_range(mapping.static_range),
    }


def _unpack_mappings(
    trace: Trace, raw: Iterable[Dict[str, Any]]
) -> List[StaticMapping]:
    return [
        StaticMapping(
            key=int(entry["key"]),
            trace_id=trace.trace_id,
            trace_range=_unpack_range(entry["trace_range"]),
            lifespan=_unpack_lifespan(entry["lifespan"]),
            program=str(entry["program"]),
            static_range=_unpack_range(entry["static_range"]),
        )
        for entry in raw
    ]


def _pack_program(program: ProgramImage) -> Dict[str, Any]:
    return {
        "name": program.name,
        "blocks": [
            {"name": block.name, "range": _pack_range(block.range)}
            for block in program.blocks
        ],
    }


def _unpack_program(entry: Dict[str, Any]) -> ProgramImage:
    program = ProgramImage(str(entry["name"]))
    for block in entry.get("blocks", []):
        program.add_block(str(block["name"]), _unpack_range(block["range"]))
    return program

"""Inspect trace regions and map them to program images from the command line."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from redlog import Level, field, get_logger, set_level

from .formats.tracefile import TraceFile, load_trace, save_trace
from .mapping.commit import MappingCommit
from .mapping.proposal import ProposalEngine, RegionMapProposal
from .program.image import ProgramImage
from .program.lief import load_program
from .trace.store import RegionHandle

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])
APP_NAME = "tracemap"
app = typer.Typer(
    name=APP_NAME,
    help=f"{APP_NAME}: inspect trace regions and map them to static program images",
    no_args_is_help=True,
    context_settings=CONTEXT_SETTINGS,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
)


def configure_logging(verbosity: int) -> None:
    level = Level(min(Level.INFO + verbosity, Level.ANNOYING))
    set_level(level)


def open_trace_file(path: Path) -> TraceFile:
    trace_path = path.expanduser()
    if not trace_path.exists():
        raise typer.BadParameter(f"trace file not found: {trace_path}")
    return load_trace(str(trace_path))


def pick_program(
    trace_file: TraceFile, program: Optional[str], binary: Optional[Path]
) -> ProgramImage:
    if binary is not None:
        return load_program(str(binary.expanduser()), name=program)
    if program is None:
        if len(trace_file.programs) == 1:
            return trace_file.programs[0]
        raise typer.BadParameter("choose a program with --program or --binary")
    image = trace_file.program(program)
    if image is None:
        raise typer.BadParameter(f"no program named {program!r} in trace file")
    return image


def pick_regions(
    trace_file: TraceFile, names: Optional[List[str]], snap: int
) -> List[RegionHandle]:
    alive = trace_file.trace.memory.regions_at(snap)
    if not names:
        return [region.handle for region in alive]
    chosen = [region.handle for region in alive if region.name in names]
    if not chosen:
        raise typer.BadParameter(f"no region alive at snap {snap} matches {names}")
    return chosen


def print_proposal(proposal: RegionMapProposal) -> None:
    for entry in proposal:
        record = entry.record
        if entry.block is not None:
            target = f"{entry.block.name} {entry.block.range}"
        else:
            target = f"<none> ({type(entry.reason).__name__})" if entry.reason else "<none>"
        typer.echo(f"  {record.name:<40} {str(record.range):<32} -> {target}")


@app.command()
def regions(
    trace_file: Path = typer.Argument(..., help="Path to the trace file"),
    snap: Optional[int] = typer.Option(
        None, "--snap", "-s", help="Snap to list (default: the file's current snap)"
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase log verbosity"
    ),
):
    """List the regions alive at a snap."""

    configure_logging(verbose)
    loaded = open_trace_file(trace_file)
    at = loaded.snap if snap is None else snap
    for region in loaded.trace.memory.regions_at(at):
        typer.echo(
            f"  {region.name:<40} 0x{region.min_address:016x}-0x{region.max_address:016x} "
            f"{region.length:#10x} {str(region.flags)} {region.lifespan}"
        )


@app.command()
def mappings(
    trace_file: Path = typer.Argument(..., help="Path to the trace file"),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase log verbosity"
    ),
):
    """List the static mappings recorded in a trace file."""

    configure_logging(verbose)
    loaded = open_trace_file(trace_file)
    for mapping in loaded.trace.static_mappings.all_entries():
        typer.echo(
            f"  0x{mapping.min_trace_address:016x} -> {mapping.program}:"
            f"{mapping.static_address} {mapping.length:#x} {mapping.lifespan}"
        )


@app.command()
def propose(
    trace_file: Path = typer.Argument(..., help="Path to the trace file"),
    program: Optional[str] = typer.Option(
        None, "--program", "-p", help="Program image name (or name override for --binary)"
    ),
    binary: Optional[Path] = typer.Option(
        None, "--binary", "-b", help="Binary whose sections form the block catalog"
    ),
    region: Optional[List[str]] = typer.Option(
        None, "--region", "-r", help="Region name to include (default: all alive)"
    ),
    snap: Optional[int] = typer.Option(None, "--snap", "-s"),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase log verbosity"
    ),
):
    """Show the proposed region to block pairing without committing it."""

    configure_logging(verbose)
    loaded = open_trace_file(trace_file)
    at = loaded.snap if snap is None else snap
    image = pick_program(loaded, program, binary)
    handles = pick_regions(loaded, region, at)

    proposal = ProposalEngine(loaded.trace).propose(handles, image, snap=at)
    typer.echo(f"proposal for {image.name}:")
    print_proposal(proposal)


@app.command("map")
def map_regions(
    trace_file: Path = typer.Argument(..., help="Path to the trace file"),
    program: Optional[str] = typer.Option(
        None, "--program", "-p", help="Program image name (or name override for --binary)"
    ),
    binary: Optional[Path] = typer.Option(
        None, "--binary", "-b", help="Binary whose sections form the block catalog"
    ),
    region: Optional[List[str]] = typer.Option(
        None, "--region", "-r", help="Region name to include (default: all alive)"
    ),
    snap: Optional[int] = typer.Option(None, "--snap", "-s"),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Validate the commit but do not save it"
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase log verbosity"
    ),
):
    """Propose and commit static mappings, then save the trace file."""

    configure_logging(verbose)
    log = get_logger("tracemap.cli")

    loaded = open_trace_file(trace_file)
    at = loaded.snap if snap is None else snap
    image = pick_program(loaded, program, binary)
    handles = pick_regions(loaded, region, at)

    proposal = ProposalEngine(loaded.trace).propose(handles, image, snap=at)
    print_proposal(proposal)

    result = MappingCommit(loaded.trace).commit_proposal(proposal, snap=at)
    if not result.ok:
        for failure in result.failures:
            typer.echo(f"failed: {failure}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"created {result.count} mappings")
    if dry_run:
        return
    if loaded.program(image.name) is None:
        loaded.programs.append(image)
    save_trace(loaded, str(trace_file.expanduser()))
    log.info("saved trace", field("path", str(trace_file)), field("mappings", result.count))


def main() -> None:
    app()


if __name__ == "__main__":
    main()

import pytest

from tracemap.core import (
    AddressRange,
    CardinalityMismatchError,
    ModuleKeyError,
    NoMatchingImageError,
    RegionFlags,
    StaleRegionError,
)
from tracemap.mapping import ProposalEngine, map_regions_enabled
from tracemap.program import ProgramImage


def _blocks(entries):
    return [(entry.record.name, entry.block.name if entry.block else None) for entry in entries]


def test_echo_regions_pair_by_address_rank(trace, echo_regions, echo_program):
    exe_text, exe_data, _, _ = echo_regions
    proposal = ProposalEngine(trace).propose({exe_data, exe_text}, echo_program)

    entries = proposal.entries
    assert len(entries) == 2
    assert entries[0].region == exe_text
    assert entries[0].block == echo_program.get_block(".text")
    assert entries[1].region == exe_data
    assert entries[1].block == echo_program.get_block(".data")
    assert all(entry.selected for entry in entries)
    assert all(entry.score == 1.0 for entry in entries)
    assert proposal.accepted() == entries


def test_proposal_is_deterministic(trace, echo_regions, echo_program):
    engine = ProposalEngine(trace)
    first = engine.propose(list(echo_regions), echo_program)
    second = engine.propose(list(reversed(echo_regions)), echo_program)
    assert _blocks(first) == _blocks(second)
    assert [e.region for e in first] == [e.region for e in second]


def test_other_module_gets_no_block(trace, echo_regions, echo_program):
    proposal = ProposalEngine(trace).propose(echo_regions, echo_program)

    by_name = {entry.name: entry for entry in proposal}
    libc = by_name["Memory[/lib/libc.so 0x7f000000]"]
    assert libc.block is None
    assert not libc.selected
    assert isinstance(libc.reason, NoMatchingImageError)
    assert len(proposal.accepted()) == 2


def test_cardinality_mismatch_leaves_candidates_unset(trace, echo_regions, echo_program):
    exe_text = echo_regions[0]
    proposal = ProposalEngine(trace).propose([exe_text], echo_program)

    (entry,) = proposal.entries
    assert entry.block is None
    assert isinstance(entry.reason, CardinalityMismatchError)


def test_region_without_module_key(trace, echo_program):
    with trace.transaction("Add"):
        handle = trace.memory.create("[heap]", trace.range(0x1000, 0x1FFF), 0, RegionFlags.RW)
    proposal = ProposalEngine(trace).propose([handle], echo_program)

    (entry,) = proposal.entries
    assert entry.block is None
    assert isinstance(entry.reason, ModuleKeyError)


def test_region_naming_a_block_is_paired_with_it(trace):
    program = ProgramImage("bin")
    program.add_block(".text", AddressRange(0x00400000, 0x0040FFFF))
    program.add_block(".data", AddressRange(0x00600000, 0x0060FFFF))
    with trace.transaction("Add"):
        data = trace.memory.create(
            "/usr/bin/bin 0x10000 .data", trace.range(0x10000, 0x1FFFF), 0
        )
        text = trace.memory.create(
            "/usr/bin/bin 0x20000 .text", trace.range(0x20000, 0x2FFFF), 0
        )

    proposal = ProposalEngine(trace).propose([data, text], program)
    assert proposal.entry_for(data).block.name == ".data"
    assert proposal.entry_for(text).block.name == ".text"


def test_block_is_proposed_at_most_once(trace, echo_program):
    with trace.transaction("Add"):
        a = trace.memory.create("/bin/echo 0x1000", trace.range(0x1000, 0x10FF), 0)
        b = trace.memory.create("/bin/echo 0x2000", trace.range(0x2000, 0x207F), 0)
        c = trace.memory.create("/usr/bin/echo 0x3000", trace.range(0x3000, 0x30FF), 0)
        d = trace.memory.create("/usr/bin/echo 0x4000", trace.range(0x4000, 0x407F), 0)

    proposal = ProposalEngine(trace).propose([a, b, c, d], echo_program)
    blocks = [entry.block for entry in proposal if entry.block is not None]
    assert len(blocks) == len(set(blocks)) == 2
    assert proposal.entry_for(a).block is not None
    assert proposal.entry_for(c).block is None


def test_empty_selection_is_an_error(trace, echo_program):
    with pytest.raises(ValueError):
        ProposalEngine(trace).propose([], echo_program)


def test_region_not_alive_at_snap(trace, echo_regions, echo_program):
    exe_text = echo_regions[0]
    with trace.transaction("Destroy"):
        trace.memory.destroy(exe_text, 5)
    with pytest.raises(StaleRegionError):
        ProposalEngine(trace).propose([exe_text], echo_program, snap=5)


def test_assign_displaces_previous_holder(trace, echo_regions, echo_program):
    proposal = ProposalEngine(trace).propose(echo_regions[:2], echo_program)
    text_entry, data_entry = proposal.entries
    text_block = echo_program.get_block(".text")

    proposal.assign(data_entry, text_block)

    assert data_entry.block == text_block
    assert data_entry.selected
    assert text_entry.block is None
    assert not text_entry.selected
    assert proposal.accepted() == [data_entry]


def test_assign_rejects_foreign_block(trace, echo_regions, echo_program):
    proposal = ProposalEngine(trace).propose(echo_regions[:2], echo_program)
    other = ProgramImage("cat")
    foreign = other.add_block(".text", AddressRange(0x1000, 0x1FFF))
    with pytest.raises(ValueError):
        proposal.assign(proposal.entries[0], foreign)


def test_select_and_block_choices(trace, echo_regions, echo_program):
    proposal = ProposalEngine(trace).propose(echo_regions[:2], echo_program)
    text_entry, data_entry = proposal.entries

    assert proposal.block_choices(data_entry)[0].name == ".data"
    assert [b.name for b in proposal.block_choices(text_entry)] == [".text", ".data"]

    proposal.select(text_entry, False)
    assert proposal.accepted() == [data_entry]

    proposal.assign(text_entry, None)
    with pytest.raises(ValueError):
        proposal.select(text_entry, True)


def test_proposal_leaves_store_and_catalog_alone(trace, echo_regions, echo_program):
    before_regions = trace.memory.all_regions()
    before_blocks = echo_program.blocks
    ProposalEngine(trace).propose(echo_regions, echo_program)
    assert trace.memory.all_regions() == before_regions
    assert echo_program.blocks == before_blocks
    assert not trace.can_redo
    assert trace.history.undo_description == "Add regions"


def test_propose_single(trace, echo_regions, echo_program):
    block = echo_program.get_block(".data")
    proposal = ProposalEngine(trace).propose_single(echo_regions[1], block, echo_program)
    (entry,) = proposal.entries
    assert entry.block == block
    assert entry.selected


def test_map_regions_enabled(trace, echo_regions):
    regions = [trace.memory.get(h) for h in echo_regions[:2]]
    program = ProgramImage("echo-trace")
    assert not map_regions_enabled([], program)
    assert not map_regions_enabled(regions, program)

    program.add_block(".text", AddressRange(0x00400000, 0x004000FF))
    assert not map_regions_enabled(regions, program)

    program.name = "echo"
    assert map_regions_enabled(regions, program)
    assert not map_regions_enabled(regions, None)

from tracemap.core import (
    AddressRange,
    Lifespan,
    OverlapError,
    StaleBlockError,
    StaleRegionError,
)
from tracemap.mapping import MappingCommit, ProposalEngine
from tracemap.program import ProgramImage


def _propose(trace, regions, program):
    return ProposalEngine(trace).propose(regions, program)


def test_commit_echo_proposal(trace, echo_regions, echo_program):
    proposal = _propose(trace, echo_regions[:2], echo_program)
    assert trace.static_mappings.all_entries() == []

    result = MappingCommit(trace).commit_proposal(proposal)

    assert result.ok
    assert result.count == 2
    text, data = trace.static_mappings.all_entries()
    assert text.lifespan == Lifespan.now_on(0)
    assert text.static_address == "ram:00400000"
    assert text.length == 0x100
    assert text.min_trace_address == 0x55550000
    assert text.program == "echo"
    assert data.lifespan == Lifespan.now_on(0)
    assert data.static_address == "ram:00600000"
    assert data.length == 0x80
    assert data.min_trace_address == 0x55750000


def test_commit_twice_fails_with_overlap(trace, echo_regions, echo_program):
    proposal = _propose(trace, echo_regions[:2], echo_program)
    assert MappingCommit(trace).commit_proposal(proposal).ok

    again = MappingCommit(trace).commit_proposal(proposal)
    assert not again.ok
    assert again.count == 0
    assert len(again.failures) == 2
    assert all(isinstance(f.error, OverlapError) for f in again.failures)
    assert len(trace.static_mappings) == 2


def test_commit_is_all_or_nothing(trace, echo_regions, echo_program):
    proposal = _propose(trace, echo_regions[:2], echo_program)
    echo_program.remove_block(echo_program.get_block(".data"))

    result = MappingCommit(trace).commit_proposal(proposal)

    assert not result.ok
    (failure,) = result.failures
    assert failure.entry.region == echo_regions[1]
    assert isinstance(failure.error, StaleBlockError)
    assert trace.static_mappings.all_entries() == []
    assert trace.history.undo_description == "Add regions"


def test_failed_commit_leaves_proposal_untouched(trace, echo_regions, echo_program):
    proposal = _propose(trace, echo_regions[:2], echo_program)
    before = [(e.block, e.selected, e.score) for e in proposal]
    with trace.transaction("Delete"):
        trace.memory.delete(echo_regions[0])

    result = MappingCommit(trace).commit_proposal(proposal)

    assert [type(f.error) for f in result.failures] == [StaleRegionError]
    assert [(e.block, e.selected, e.score) for e in proposal] == before

    # the operator drops the stale entry and retries
    proposal.select(proposal.entries[0], False)
    retry = MappingCommit(trace).commit_proposal(proposal)
    assert retry.ok
    assert retry.count == 1


def test_region_not_alive_at_reference_snap(trace, echo_regions, echo_program):
    proposal = _propose(trace, echo_regions[:2], echo_program)
    with trace.transaction("Destroy"):
        trace.memory.destroy(echo_regions[0], 3)

    stale = MappingCommit(trace).commit_proposal(proposal, snap=3)
    assert [type(f.error) for f in stale.failures] == [StaleRegionError]

    result = MappingCommit(trace).commit_proposal(proposal, snap=2)
    assert result.ok
    text = trace.static_mappings.find_containing(0x55550000, 2)
    assert text.lifespan == Lifespan(0, 3)


def test_entries_of_one_commit_must_not_overlap(trace, echo_regions, echo_program):
    proposal = _propose(trace, echo_regions[:2], echo_program)
    text_entry, data_entry = proposal.entries
    # force both entries onto .text behind the proposal's back
    data_entry.block = text_entry.block
    data_entry.selected = True

    result = MappingCommit(trace).commit_proposal(proposal)
    assert not result.ok
    (failure,) = result.failures
    assert failure.entry is data_entry
    assert isinstance(failure.error, OverlapError)
    assert trace.static_mappings.all_entries() == []


def test_mapping_length_is_the_shorter_side(trace, echo_regions):
    program = ProgramImage("echo")
    block = program.add_block(".text", AddressRange(0x00400000, 0x0040007F))
    proposal = ProposalEngine(trace).propose_single(echo_regions[0], block, program)

    result = MappingCommit(trace).commit_proposal(proposal)
    (mapping,) = result.mappings
    assert mapping.length == 0x80
    assert mapping.trace_range == AddressRange(0x55550000, 0x5555007F)


def test_commit_is_one_undoable_transaction(trace, echo_regions, echo_program):
    proposal = _propose(trace, echo_regions[:2], echo_program)
    MappingCommit(trace).commit_proposal(proposal)

    assert trace.undo_description == "Map regions to echo"
    trace.undo()
    assert trace.static_mappings.all_entries() == []
    trace.redo()
    assert len(trace.static_mappings) == 2


def test_nothing_accepted_commits_nothing(trace, echo_regions, echo_program):
    proposal = _propose(trace, [echo_regions[0]], echo_program)
    result = MappingCommit(trace).commit_proposal(proposal)
    assert result.ok
    assert result.count == 0
    assert trace.history.undo_description == "Add regions"


def test_region_destroyed_after_proposal_is_stale(trace, echo_regions, echo_program):
    proposal = _propose(trace, echo_regions[:2], echo_program)
    with trace.transaction("Destroy"):
        trace.memory.destroy(echo_regions[0], 1)

    result = MappingCommit(trace).commit_proposal(proposal)

    assert not result.ok
    (failure,) = result.failures
    assert failure.entry.region == echo_regions[0]
    assert isinstance(failure.error, StaleRegionError)
    assert trace.static_mappings.all_entries() == []

import pytest

from tracemap.core import AddressRange, AddressSet, RegionFlags, StaleRegionError
from tracemap.program import ProgramImage
from tracemap.view import RegionTableColumn


def _add_text(trace):
    with trace.transaction("Add region"):
        return trace.memory.create(
            "Memory[bin:.text]", trace.range(0x00400000, 0x0040FFFF), 0, RegionFlags.RX
        )


def test_navigate_to_start_and_end(controller, manager, trace):
    _add_text(trace)
    manager.activate_trace(trace, snap=2)
    controller.view.settle()
    (row,) = controller.view.rows

    requests = []
    controller.add_navigation_listener(requests.append)

    start = controller.navigate(row, RegionTableColumn.START)
    end = controller.navigate(row, RegionTableColumn.END)
    assert start.address == 0x00400000
    assert end.address == 0x0040FFFF
    assert start.snap == 2
    assert start.trace is trace
    assert requests == [start, end]

    assert controller.navigate(row, RegionTableColumn.NAME) is None
    assert controller.navigate(row, RegionTableColumn.LENGTH) is None
    assert len(requests) == 2


def test_select_addresses(controller, manager, trace):
    handle = _add_text(trace)
    manager.activate_trace(trace)
    controller.view.settle()

    assert not controller.select_addresses_enabled
    controller.set_selected_regions([handle])
    assert controller.select_addresses_enabled
    assert controller.select_addresses() == AddressSet(
        [trace.range(0x00400000, 0x0040FFFF)]
    )


def test_select_rows(controller, manager, trace):
    handle = _add_text(trace)
    with trace.transaction("Add"):
        trace.memory.create("Memory[bin:.data]", trace.range(0x00600000, 0x0060FFFF), 0)
    manager.activate_trace(trace)
    controller.view.settle()

    assert controller.select_rows_enabled
    rows = controller.select_rows([trace.range(0x00401234, 0x00404321)])
    assert [row.handle for row in rows] == [handle]
    assert [row.handle for row in controller.selected_rows()] == [handle]


def test_select_rows_disabled_without_trace(controller):
    assert not controller.select_rows_enabled
    assert controller.select_rows([AddressRange(0, 0xFF)]) == []


def test_selection_cleared_on_trace_change(controller, manager, trace):
    handle = _add_text(trace)
    manager.activate_trace(trace)
    controller.view.settle()
    controller.set_selected_regions([handle])

    manager.activate_trace(None)
    assert controller.selected_regions() == []
    manager.activate_trace(trace)
    controller.view.settle()
    assert controller.selected_rows() == []


def test_map_regions_action(controller, manager, trace, echo_regions):
    exe_text, exe_data, _, _ = echo_regions
    program = ProgramImage("echo-trace")
    controller.set_program(program)

    assert not controller.map_regions_enabled

    manager.activate_trace(trace)
    controller.view.settle()
    assert not controller.map_regions_enabled

    controller.set_selected_regions([exe_text, exe_data])
    assert not controller.map_regions_enabled

    program.add_block(".text", AddressRange(0x00400000, 0x004000FF))
    program.add_block(".data", AddressRange(0x00600000, 0x0060007F))
    assert not controller.map_regions_enabled

    program.name = "echo"
    assert controller.map_regions_enabled

    proposal = controller.propose_mapping()
    assert [entry.block.name for entry in proposal.accepted()] == [".text", ".data"]

    result = controller.commit_mapping(proposal)
    assert result.ok
    text, data = trace.static_mappings.all_entries()
    assert text.static_address == "ram:00400000"
    assert text.length == 0x100
    assert data.static_address == "ram:00600000"
    assert data.length == 0x80


def test_propose_without_program(controller, manager, trace, echo_regions):
    manager.activate_trace(trace)
    controller.set_selected_regions(echo_regions[:2])
    with pytest.raises(ValueError):
        controller.propose_mapping()


def test_map_regions_skips_regions_destroyed_before_commit(
    controller, manager, trace, echo_regions, echo_program
):
    exe_text, exe_data, _, _ = echo_regions
    controller.set_program(echo_program)
    manager.activate_trace(trace, snap=0)
    controller.view.settle()
    controller.set_selected_regions([exe_text, exe_data])
    proposal = controller.propose_mapping()

    with trace.transaction("Destroy"):
        trace.memory.destroy(exe_text, 1)
    manager.activate_snap(5)
    controller.view.settle()

    assert [r.handle for r in controller.selected_regions()] == [exe_data]
    result = controller.commit_mapping(proposal)
    assert not result.ok
    assert [type(f.error) for f in result.failures] == [StaleRegionError]
    assert trace.static_mappings.all_entries() == []


def test_selected_regions_follow_the_view_snap(controller, manager, trace, echo_regions):
    exe_text, exe_data, _, _ = echo_regions
    with trace.transaction("Destroy"):
        trace.memory.destroy(exe_text, 3)
    manager.activate_trace(trace, snap=2)
    controller.set_selected_regions([exe_text, exe_data])
    assert [r.handle for r in controller.selected_regions()] == [exe_text, exe_data]

    manager.activate_snap(3)
    assert [r.handle for r in controller.selected_regions()] == [exe_data]

from __future__ import annotations

from typing import Callable, List

import pytest

from tracemap.core import AddressRange, RegionFlags
from tracemap.program import ProgramImage
from tracemap.trace import Trace
from tracemap.view import RegionsController, TraceManager, ViewConfig


class _Scheduled:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Collects debounce timers; tests fire them explicitly."""

    def __init__(self):
        self.scheduled: List[_Scheduled] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> _Scheduled:
        item = _Scheduled(delay, callback)
        self.scheduled.append(item)
        return item

    @property
    def pending(self) -> List[_Scheduled]:
        return [item for item in self.scheduled if not item.cancelled]

    def run_pending(self) -> int:
        ran = 0
        while self.pending:
            items, self.scheduled = self.pending, []
            for item in items:
                item.callback()
                ran += 1
        return ran


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def trace() -> Trace:
    return Trace("echo-trace")


@pytest.fixture
def manager() -> TraceManager:
    return TraceManager()


@pytest.fixture
def controller(manager, scheduler) -> RegionsController:
    return RegionsController(manager, ViewConfig(debounce_ms=50), scheduler)


@pytest.fixture
def echo_regions(trace):
    """Text and data regions of /bin/echo plus libc, created at snap 0."""

    mm = trace.memory
    with trace.transaction("Add regions"):
        exe_text = mm.create(
            "Memory[/bin/echo 0x55550000]",
            trace.range(0x55550000, 0x555500FF),
            0,
            RegionFlags.RX,
        )
        exe_data = mm.create(
            "Memory[/bin/echo 0x55750000]",
            trace.range(0x55750000, 0x5575007F),
            0,
            RegionFlags.RW,
        )
        lib_text = mm.create(
            "Memory[/lib/libc.so 0x7f000000]",
            trace.range(0x7F000000, 0x7F0003FF),
            0,
            RegionFlags.RX,
        )
        lib_data = mm.create(
            "Memory[/lib/libc.so 0x7f100000]",
            trace.range(0x7F100000, 0x7F10003F),
            0,
            RegionFlags.RW,
        )
    return exe_text, exe_data, lib_text, lib_data


@pytest.fixture
def echo_program() -> ProgramImage:
    program = ProgramImage("echo")
    program.add_block(".text", AddressRange(0x00400000, 0x004000FF))
    program.add_block(".data", AddressRange(0x00600000, 0x0060007F))
    return program

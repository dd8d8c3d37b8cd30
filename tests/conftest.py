import random

import matplotlib

matplotlib.use("Agg")

import pytest

from mlfq_sim.models import BlockedReason, ProcState
from mlfq_sim.scheduler import add_process, create_initial, update_settings


class FixedRandom(random.Random):
    """random() always returns the same value"""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def build_state(*specs, plan_assigned=True, **settings):
    """State with the given processes; plan_assigned=True skips the deferred random resource plan"""
    state = create_initial()
    for spec in specs:
        state = add_process(state, spec)
    if settings:
        state = update_settings(state, **settings)
    if plan_assigned:
        for proc in state.processes.values():
            proc.plan_assigned = True
    return state


def by_name(state, name):
    return next(p for p in state.processes.values() if p.name == name)


def assert_invariants(state):
    """Queue membership, ownership and wait-for consistency"""
    seen = set()
    for level, queue in enumerate(state.queues):
        for pid in queue:
            assert pid not in seen, f"P{pid} queued twice"
            seen.add(pid)
            proc = state.processes[pid]
            assert proc.state == ProcState.READY
            assert proc.queue_level == level
    for proc in state.processes.values():
        if proc.state == ProcState.READY:
            assert proc.pid in seen

    running = [p for p in state.processes.values() if p.state == ProcState.RUNNING]
    assert len(running) <= 1
    if running:
        assert state.current == running[0].pid

    for proc in state.processes.values():
        assert proc.acquired == proc.required[:len(proc.acquired)]
        for name in proc.acquired:
            if name in state.resources:
                assert state.resources[name].owner == proc.pid
    for name, resource in state.resources.items():
        if resource.owner is not None:
            assert name in state.processes[resource.owner].acquired
            assert state.processes[resource.owner].state != ProcState.FINISHED

    for proc in state.processes.values():
        queued_on = [r for r in state.resources.values() if proc.pid in r.wait_queue]
        if proc.state == ProcState.BLOCKED and proc.blocked_reason == BlockedReason.RESOURCE:
            assert len(queued_on) == 1
            assert queued_on[0].name == proc.next_required
            assert state.wait_for.get(proc.pid) == [queued_on[0].owner]
        else:
            assert queued_on == []
            assert proc.pid not in state.wait_for


@pytest.fixture
def rng():
    return random.Random(1234)

import random

import pytest
from conftest import assert_invariants, build_state, by_name

from mlfq_sim.deadlock import DeadlockManager, detect_cycle
from mlfq_sim.models import AlgoKey, BlockedReason, ProcessType, ProcState, ResourcePolicy
from mlfq_sim.resources import ResourceManager
from mlfq_sim.scheduler import ProcessSpec, resolve_deadlock, run_until_idle, step

INTERACTIVE = ProcessType.INTERACTIVE


def crossed_pair(**settings):
    """A holds R1 then wants R2, B holds R2 then wants R1"""
    return build_state(ProcessSpec("A", 6, 0, 2, INTERACTIVE, ["R1", "R2"]),
                       ProcessSpec("B", 6, 0, 2, INTERACTIVE, ["R2", "R1"]), **settings)


def run(state, ticks, quantum=1):
    rng = random.Random(0)
    for _ in range(ticks):
        state = step(state, quantum, rng)
        assert_invariants(state)
    return state


class TestDetectCycle:

    def test_acyclic(self):
        assert detect_cycle({}) == []
        assert detect_cycle({1: [2], 2: [3]}) == []

    def test_simple_cycle(self):
        assert detect_cycle({1: [2], 2: [1]}) == [1, 2]
        assert detect_cycle({1: [2], 2: [3], 3: [1]}) == [1, 2, 3]

    def test_cycle_slice_starts_at_repeated_node(self):
        assert detect_cycle({1: [2], 2: [3], 3: [2]}) == [2, 3]

    def test_roots_in_ascending_order(self):
        assert detect_cycle({5: [6], 6: [5], 1: [2], 2: [1]}) == [1, 2]

    def test_visited_branch_is_not_a_cycle(self):
        # 3 is reached twice but never while on the current path
        assert detect_cycle({1: [2, 3], 2: [3]}) == []

    def test_long_chain_has_no_recursion_limit(self):
        chain = {i: [i + 1] for i in range(5000)}
        assert detect_cycle(chain) == []
        chain[5000] = [0]
        assert len(detect_cycle(chain)) == 5001


class TestVictim:

    def manager(self, *specs):
        state = build_state(*specs).copy()
        return DeadlockManager(state, ResourceManager(state, random.Random(0))), state

    def test_highest_priority_number_loses(self):
        dm, _ = self.manager(ProcessSpec("A", 3, 0, 4), ProcessSpec("B", 3, 5, 1))
        assert dm.pick_victim([1, 2]).name == "A"

    def test_latest_arrival_breaks_ties(self):
        dm, _ = self.manager(ProcessSpec("A", 3, 2, 1), ProcessSpec("B", 3, 0, 1))
        assert dm.pick_victim([1, 2]).name == "A"

    def test_highest_pid_breaks_remaining_ties(self):
        dm, _ = self.manager(ProcessSpec("A", 3, 0, 1), ProcessSpec("B", 3, 0, 1))
        assert dm.pick_victim([1, 2]).name == "B"

    def test_unknown_pids(self):
        dm, _ = self.manager(ProcessSpec("A", 3))
        assert dm.pick_victim([42]) is None


class TestDeadlockScenario:

    def test_cycle_detected_and_left_when_auto_resolve_off(self):
        state = run(crossed_pair(auto_resolve=False), 4)
        assert state.cycle == [1, 2]
        assert state.wait_for == {1: [2], 2: [1]}
        for proc in state.processes.values():
            assert proc.state == ProcState.BLOCKED
            assert proc.blocked_reason == BlockedReason.RESOURCE
        assert "t=2: A waiting for R2 (owned by P2)" in state.log
        assert "t=3: B waiting for R1 (owned by P1)" in state.log

        # Nothing can run while the cycle stands
        stuck = run(state, 3)
        assert stuck.cycle == [1, 2]
        assert [item.pid for item in stuck.timeline[-3:]] == [None, None, None]

    def test_explicit_resolution(self):
        state = run(crossed_pair(auto_resolve=False), 4)
        resolved = resolve_deadlock(state)
        assert state.cycle == [1, 2]
        assert resolved.cycle == []
        victim = by_name(resolved, "B")
        assert victim.state == ProcState.FINISHED
        assert victim.remaining == 0
        assert victim.end_time == 4
        assert victim.finished_by == AlgoKey.PRIORITY
        survivor = by_name(resolved, "A")
        assert survivor.state == ProcState.READY
        assert survivor.acquired == ["R1", "R2"]
        assert resolved.resources["R2"].owner == 1
        assert resolved.resources["R1"].wait_queue == []
        assert_invariants(resolved)

    def test_auto_resolution_and_survivor_completes(self):
        state = run(crossed_pair(), 4)
        assert state.cycle == []
        assert "t=4: Deadlock cycle detected: [1 → 2]" in state.log
        assert "t=4: Terminating victim B (priority=2, arrival=0)" in state.log
        assert "t=4: B released R2" in state.log
        assert "t=4: A resumed (acquired R2)" in state.log
        assert "t=4: Deadlock resolved successfully" in state.log

        state = run_until_idle(state, quantum=1, rng=random.Random(0))
        assert by_name(state, "A").end_time == 9
        assert by_name(state, "A").finished_by == AlgoKey.PRIORITY
        assert state.finished_order == [2, 1]
        assert all(r.owner is None for r in state.resources.values())

    def test_resolve_without_cycle_is_noop(self):
        state = crossed_pair()
        assert resolve_deadlock(state) is state

    def test_two_cycles_resolved_in_one_call(self):
        specs = [ProcessSpec(name, 5, 0, 1, INTERACTIVE) for name in ("A", "B", "C", "D")]
        state = build_state(*specs).copy()
        state.wait_for = {1: [2], 2: [1], 3: [4], 4: [3]}
        for proc in state.processes.values():
            proc.state = ProcState.BLOCKED
        state.cycle = detect_cycle(state.wait_for)

        resolved = resolve_deadlock(state)
        assert resolved.cycle == []
        assert resolved.wait_for == {}
        assert resolved.finished_order == [2, 4]
        assert sum("Terminating victim" in line for line in resolved.log) == 2
        assert resolved.log[-1] == "t=0: Deadlock resolved successfully"

    def test_no_valid_victim_warns_and_keeps_cycle(self):
        state = build_state().copy()
        state.wait_for = {98: [99], 99: [98]}
        state.cycle = [98, 99]
        resolved = resolve_deadlock(state)
        assert resolved.cycle == [98, 99]
        assert resolved.log == ["t=0: No valid victim found in cycle: [98, 99]"]


@pytest.mark.parametrize("policy, expected", [("FIFO", "B"), ("Priority", "C")])
def test_handoff_repoints_remaining_waiters(policy, expected):
    state = build_state(ProcessSpec("A", 5, 0, 1, INTERACTIVE, ["R1"]),
                        ProcessSpec("B", 5, 0, 3, INTERACTIVE, ["R1"]),
                        ProcessSpec("C", 5, 0, 0, INTERACTIVE, ["R1"])).copy()
    state.resources["R1"].policy = ResourcePolicy(policy)
    rm = ResourceManager(state, random.Random(0))
    a, b, c = (state.processes[pid] for pid in (1, 2, 3))

    assert rm.allocate_next(a)
    assert not rm.allocate_next(b)
    assert not rm.allocate_next(c)
    assert state.resources["R1"].wait_queue == [2, 3]
    assert state.wait_for == {2: [1], 3: [1]}

    rm.release_all(a)
    winner = by_name(state, expected)
    loser = c if winner is b else b
    assert state.resources["R1"].owner == winner.pid
    assert winner.state == ProcState.READY
    assert state.resources["R1"].wait_queue == [loser.pid]
    assert state.wait_for == {loser.pid: [winner.pid]}

"""Tick-driven MLFQ scheduling engine.

Every public operation takes a :class:`SimulationState` and returns a new one;
the input snapshot is never modified. ``step`` advances the simulation by one
tick in this order: I/O unblocking, arrivals, aging, preemption, dispatch,
resource allocation, execution (I/O trigger, completion, demotion), deadlock
detection/resolution and queue reconciliation.
"""
import logging
import random
from dataclasses import dataclass
from typing import Optional, Sequence

from mlfq_sim import events
from mlfq_sim.deadlock import DeadlockManager, detect_cycle, remove_edges
from mlfq_sim.models import (
    ALGO_FOR_LEVEL, DEFAULT_RESOURCES, HistorySample, Process, ProcessType,
    ProcState, Resource, SimulationState, TimelineItem, parse_process_type,
)
from mlfq_sim.queues import (
    admit_arrivals, apply_aging, check_preemption, clear_current, dispatch,
    enqueue, handle_io_unblock, reconcile_queues, remove_from_queues,
    should_trigger_io, start_io,
)
from mlfq_sim.resources import ResourceManager

logger = logging.getLogger(__name__)

DEFAULT_QUANTUM = 3
RANDOM_BATCH_SIZE = 10


@dataclass
class ProcessSpec:
    """User supplied parameters of a new process"""
    name: str
    burst: int
    arrival: int = 0
    priority: int = 0
    ptype: ProcessType = ProcessType.INTERACTIVE
    resources: Sequence[str] = ()


class MLFQScheduler:
    """Runs one tick over a draft state it exclusively owns"""

    def __init__(self, state: SimulationState, rng: Optional[random.Random] = None):
        self.state = state
        self.rng = rng if rng is not None else random.Random()
        self.resources = ResourceManager(state, self.rng)
        self.deadlock = DeadlockManager(state, self.resources)

    def tick(self, quantum: int = DEFAULT_QUANTUM):
        state = self.state

        handle_io_unblock(state)
        admit_arrivals(state)
        for proc in state.processes.values():
            if proc.state == ProcState.FINISHED:
                remove_from_queues(state, proc.pid)
        apply_aging(state)

        current = state.current_process
        if current is not None and current.state in (ProcState.FINISHED, ProcState.BLOCKED):
            clear_current(state)
        check_preemption(state)

        proc = state.current_process
        if proc is None:
            proc = dispatch(state)

        if proc is not None and not self.resources.allocate_next(proc):
            clear_current(state)
            # Give the CPU to someone else for this tick instead of idling
            proc = dispatch(state)

        if proc is not None:
            self._execute(proc, quantum)
        else:
            state.timeline.append(TimelineItem(state.time))

        state.time += 1

        state.cycle = detect_cycle(state.wait_for)
        if state.cycle and state.config.deadlock.auto_resolve:
            self.deadlock.resolve()

        reconcile_queues(state)

    def _execute(self, proc: Process, quantum: int):
        """Run the process for one time unit"""
        state = self.state
        if proc.start_time is None:
            proc.start_time = state.time
        proc.remaining -= 1
        state.rr_slice += 1
        state.timeline.append(TimelineItem(state.time, proc.pid, proc.queue_level))
        proc.history.append(HistorySample(state.time, proc.queue_level))

        if proc.remaining > 0 and should_trigger_io(state, proc, self.rng):
            start_io(state, proc)

        if proc.remaining <= 0:
            self._finish(proc)
        elif (proc.queue_level == 0 and proc.state == ProcState.RUNNING
              and state.rr_slice >= max(1, quantum)):
            self._demote(proc)

    def _finish(self, proc: Process):
        state = self.state
        proc.remaining = 0
        proc.state = ProcState.FINISHED
        proc.end_time = state.time + 1
        proc.finished_by = ALGO_FOR_LEVEL[proc.queue_level]
        state.finished_order.append(proc.pid)
        self.resources.release_all(proc)
        remove_edges(state, proc.pid)
        state.events.append(events.finished(state.time + 1, proc.pid, proc.name, proc.finished_by.value))
        clear_current(state)
        logger.debug("t=%d %s finished via %s", state.time, proc.name, proc.finished_by.value)

    def _demote(self, proc: Process):
        """Quantum used up in Q0, move to Q1"""
        state = self.state
        proc.state = ProcState.READY
        proc.queue_level = 1
        enqueue(state, proc)
        state.events.append(events.demoted(state.time + 1, proc.pid, proc.name))
        clear_current(state)


def create_initial() -> SimulationState:
    """Empty simulation with resources R1, R2, R3 and default settings"""
    return SimulationState(resources={name: Resource(name) for name in DEFAULT_RESOURCES})


def reset(state: Optional[SimulationState] = None) -> SimulationState:
    """Discard everything, pid numbering starts again at 1"""
    return create_initial()


def step(state: SimulationState, quantum: int = DEFAULT_QUANTUM,
         rng: Optional[random.Random] = None) -> SimulationState:
    """Advance the simulation by one tick"""
    draft = state.copy()
    MLFQScheduler(draft, rng).tick(quantum)
    return draft


def append_process(draft: SimulationState, spec: ProcessSpec, plan_assigned: bool = False) -> Process:
    """Create a process on a draft state using its pid counter"""
    pid = draft.next_pid
    draft.next_pid += 1
    name = (spec.name or "").strip() or f"P{pid}"
    proc = Process(
        pid=pid,
        name=name,
        arrival=max(0, int(spec.arrival)),
        burst=max(1, int(spec.burst)),
        priority=max(0, int(spec.priority)),
        ptype=parse_process_type(spec.ptype),
        required=list(spec.resources),
        plan_assigned=plan_assigned,
    )
    draft.processes[pid] = proc
    return proc


def add_process(state: SimulationState, spec: ProcessSpec) -> SimulationState:
    """Append one process; an empty resource list gets a random plan when first scheduled"""
    draft = state.copy()
    append_process(draft, spec)
    return draft


def generate_random(state: SimulationState, rng: Optional[random.Random] = None,
                    count: int = RANDOM_BATCH_SIZE) -> SimulationState:
    """Append randomly parameterised processes, resource plans drawn immediately"""
    rng = rng if rng is not None else random.Random()
    types = list(ProcessType)
    draft = state.copy()
    for _ in range(count):
        ptype = rng.choice(types)
        burst = rng.randrange(3, 15)
        arrival = rng.randrange(0, 10)
        priority = rng.randrange(0, 5)

        plan = rng.random()
        if plan < 0.4:
            required = []
        elif plan < 0.7:
            required = [rng.choice(["R1", "R2"])]
        else:
            required = list(rng.choice([("R1", "R2"), ("R2", "R3")]))

        append_process(draft, ProcessSpec("", burst, arrival, priority, ptype, required),
                       plan_assigned=True)
    return draft


def resolve_deadlock(state: SimulationState, rng: Optional[random.Random] = None) -> SimulationState:
    """Break the currently detected cycle now; no-op without one"""
    if not state.cycle:
        return state
    draft = state.copy()
    MLFQScheduler(draft, rng).deadlock.resolve()
    reconcile_queues(draft)
    return draft


def update_settings(state: SimulationState, aging_enabled: Optional[bool] = None,
                    aging_threshold: Optional[int] = None, io_enabled: Optional[bool] = None,
                    io_block_length: Optional[int] = None,
                    auto_resolve: Optional[bool] = None) -> SimulationState:
    """Return a state with the given settings changed; numeric values are floored at 1"""
    draft = state.copy()
    config = draft.config
    if aging_enabled is not None:
        config.aging.enabled = bool(aging_enabled)
    if aging_threshold is not None:
        config.aging.threshold = max(1, int(aging_threshold))
    if io_enabled is not None:
        config.io.enabled = bool(io_enabled)
    if io_block_length is not None:
        config.io.block_length = max(1, int(io_block_length))
    if auto_resolve is not None:
        config.deadlock.auto_resolve = bool(auto_resolve)
    return draft


def is_complete(state: SimulationState) -> bool:
    return bool(state.processes) and all(
        p.state == ProcState.FINISHED for p in state.processes.values()
    )


def run_until_idle(state: SimulationState, quantum: int = DEFAULT_QUANTUM, max_ticks: int = 1000,
                   rng: Optional[random.Random] = None) -> SimulationState:
    """Step until every process has finished or max_ticks ticks have run"""
    rng = rng if rng is not None else random.Random()
    for _ in range(max_ticks):
        if is_complete(state):
            break
        state = step(state, quantum, rng)
    return state

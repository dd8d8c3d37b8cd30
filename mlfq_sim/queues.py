import logging
import random
from typing import Optional

from mlfq_sim import events
from mlfq_sim.models import (
    BlockedReason, Process, ProcessType, ProcState, SimulationState,
)

logger = logging.getLogger(__name__)

# Chance that a process starts an I/O burst after executing one unit
IO_PROBABILITY = {
    ProcessType.INTERACTIVE: 0.2,
    ProcessType.IMPORTANT: 0.1,
    ProcessType.BATCH: 0.05,
}


def enqueue(state: SimulationState, proc: Process):
    """Append a process to the queue of its current level unless already there"""
    queue = state.queues[proc.queue_level]
    if proc.pid not in queue:
        queue.append(proc.pid)


def remove_from_queues(state: SimulationState, pid: int):
    for queue in state.queues:
        if pid in queue:
            queue.remove(pid)


def make_ready(state: SimulationState, proc: Process):
    proc.state = ProcState.READY
    proc.blocked_reason = None
    enqueue(state, proc)


def clear_current(state: SimulationState):
    state.current = None
    state.rr_slice = 0


def admit_arrivals(state: SimulationState):
    """Move every new process whose arrival tick has come into its ready queue"""
    for proc in state.processes.values():
        if proc.state == ProcState.NEW and proc.arrival <= state.time:
            make_ready(state, proc)
            state.events.append(events.arrived(state.time, proc.pid, proc.name, proc.queue_level))


def dispatch(state: SimulationState) -> Optional[Process]:
    """Pick the next process: Q0 in FIFO order, else Q1 by priority, else Q2 in FIFO order"""
    for level, queue in enumerate(state.queues):
        if not queue:
            continue
        if level == 1:
            # min() keeps the first of equal priorities, so ties follow queue order
            pid = min(queue, key=lambda x: state.processes[x].priority)
        else:
            pid = queue[0]
        queue.remove(pid)

        proc = state.processes[pid]
        proc.state = ProcState.RUNNING
        proc.queue_level = level
        proc.age_wait = 0
        state.current = pid
        state.rr_slice = 0
        logger.debug("t=%d dispatch %s from Q%d", state.time, proc.name, level)
        return proc
    return None


def check_preemption(state: SimulationState) -> bool:
    """Preempt a running Q1 process when a strictly higher priority one waits in Q1"""
    current = state.current_process
    if current is None or current.state != ProcState.RUNNING or current.queue_level != 1:
        return False

    higher_exists = any(
        state.processes[pid].priority < current.priority for pid in state.q1
    )
    if not higher_exists:
        return False

    current.state = ProcState.READY
    enqueue(state, current)
    state.events.append(events.preempted(state.time + 1, current.pid, current.name))
    clear_current(state)
    return True


def apply_aging(state: SimulationState):
    """Age every queued process and promote it one level once it hits the threshold"""
    aging = state.config.aging
    if not aging.enabled:
        return
    threshold = max(1, aging.threshold)

    # Iterate over copies so a promoted process is aged only once this tick
    for level, queue in enumerate([list(q) for q in state.queues]):
        for pid in queue:
            proc = state.processes[pid]
            proc.age_wait += 1
            if proc.age_wait < threshold:
                continue
            if level > 0:
                state.queues[level].remove(pid)
                proc.queue_level = level - 1
                enqueue(state, proc)
                state.events.append(events.promoted(state.time, pid, proc.name, proc.queue_level))
            proc.age_wait = 0


def handle_io_unblock(state: SimulationState):
    """Count down I/O blocks, returning finished ones to their ready queue"""
    if not state.config.io.enabled:
        return
    for proc in state.processes.values():
        if (proc.state != ProcState.BLOCKED or proc.blocked_reason != BlockedReason.IO
                or proc.io_block_remaining <= 0):
            continue
        proc.io_block_remaining -= 1
        if proc.io_block_remaining <= 0:
            make_ready(state, proc)
            state.events.append(events.io_completed(state.time, proc.pid, proc.name))
        else:
            proc.total_io_blocked += 1


def should_trigger_io(state: SimulationState, proc: Process, rng: random.Random) -> bool:
    if not state.config.io.enabled or proc.remaining <= 0:
        return False
    return rng.random() < IO_PROBABILITY[proc.ptype]


def start_io(state: SimulationState, proc: Process):
    """Block the running process on I/O; held resources are kept"""
    proc.state = ProcState.BLOCKED
    proc.blocked_reason = BlockedReason.IO
    proc.io_block_remaining = max(1, state.config.io.block_length)
    clear_current(state)
    state.events.append(events.io_started(state.time + 1, proc.pid, proc.name, proc.io_block_remaining))


def reconcile_queues(state: SimulationState):
    """Make sure every ready process sits in its queue and nothing else does"""
    for proc in state.processes.values():
        if proc.state == ProcState.READY:
            enqueue(state, proc)
        else:
            remove_from_queues(state, proc.pid)

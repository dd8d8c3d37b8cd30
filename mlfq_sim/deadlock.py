import logging
from typing import Dict, List, Optional, Sequence

from mlfq_sim import events
from mlfq_sim.models import ALGO_FOR_LEVEL, Process, ProcState, SimulationState

logger = logging.getLogger(__name__)

MAX_RESOLUTION_ROUNDS = 20


def add_wait_edge(state: SimulationState, from_pid: int, to_pid: int):
    owners = state.wait_for.setdefault(from_pid, [])
    if to_pid not in owners:
        owners.append(to_pid)


def remove_outgoing_edges(state: SimulationState, pid: int):
    state.wait_for.pop(pid, None)


def remove_edges(state: SimulationState, pid: int):
    """Drop every edge from or to a process"""
    state.wait_for.pop(pid, None)
    for waiter in list(state.wait_for):
        owners = [x for x in state.wait_for[waiter] if x != pid]
        if owners:
            state.wait_for[waiter] = owners
        else:
            del state.wait_for[waiter]


def detect_cycle(wait_for: Dict[int, List[int]]) -> List[int]:
    """Return the first cycle found by depth-first search, or [] when the graph is acyclic.

    Roots are tried in ascending pid order and neighbours in edge order. The
    cycle is the slice of the current DFS path starting at the node the back
    edge points to.
    """
    visited = set()
    on_stack = set()
    path: List[int] = []

    for root in sorted(wait_for):
        if root in visited:
            continue
        visited.add(root)
        on_stack.add(root)
        path.append(root)
        frames = [[root, 0]]  # (node, index of next neighbour to look at)

        while frames:
            frame = frames[-1]
            node, index = frame
            neighbors = wait_for.get(node, [])
            if index >= len(neighbors):
                frames.pop()
                on_stack.discard(node)
                path.pop()
                continue

            frame[1] = index + 1
            nxt = neighbors[index]
            if nxt not in visited:
                visited.add(nxt)
                on_stack.add(nxt)
                path.append(nxt)
                frames.append([nxt, 0])
            elif nxt in on_stack:
                # Back edge
                return path[path.index(nxt):]

    return []


class DeadlockManager:
    """Breaks wait-for cycles by terminating victims until the graph is acyclic"""

    def __init__(self, state: SimulationState, resource_manager):
        self.state = state
        self.resources = resource_manager

    def pick_victim(self, cycle: Sequence[int]) -> Optional[Process]:
        """Highest priority number loses, then latest arrival, then highest pid"""
        candidates = [self.state.processes[pid] for pid in cycle if pid in self.state.processes]
        if not candidates:
            return None
        return max(candidates, key=lambda p: (p.priority, p.arrival, p.pid))

    def terminate(self, victim: Process):
        """Finish a process without running it and hand its resources on"""
        state = self.state
        victim.state = ProcState.FINISHED
        victim.blocked_reason = None
        victim.end_time = state.time
        victim.finished_by = ALGO_FOR_LEVEL[victim.queue_level]
        victim.remaining = 0
        state.finished_order.append(victim.pid)

        # A victim is always blocked, drop its place in every wait queue first
        for resource in state.resources.values():
            if victim.pid in resource.wait_queue:
                resource.wait_queue.remove(victim.pid)

        self.resources.release_all(victim)
        remove_edges(state, victim.pid)
        for queue in state.queues:
            if victim.pid in queue:
                queue.remove(victim.pid)
        if state.current == victim.pid:
            state.current = None
            state.rr_slice = 0

    def resolve(self):
        """Terminate victims while a cycle exists, up to MAX_RESOLUTION_ROUNDS"""
        state = self.state
        rounds = 0
        while state.cycle and rounds < MAX_RESOLUTION_ROUNDS:
            victim = self.pick_victim(state.cycle)
            if victim is None:
                cycle_text = ", ".join(str(pid) for pid in state.cycle)
                state.events.append(events.warning(
                    state.time, f"No valid victim found in cycle: [{cycle_text}]"))
                logger.warning("t=%d no valid victim in cycle %s", state.time, state.cycle)
                break

            state.events.append(events.cycle_detected(state.time, state.cycle))
            state.events.append(events.victim_chosen(
                state.time, victim.pid, victim.name, victim.priority, victim.arrival))
            self.terminate(victim)

            old_cycle = list(state.cycle)
            state.cycle = detect_cycle(state.wait_for)
            if not state.cycle:
                state.events.append(events.deadlock_resolved(state.time))
            elif state.cycle == old_cycle:
                state.events.append(events.warning(
                    state.time, "Warning: Cycle unchanged after victim termination"))
                logger.warning("t=%d cycle %s unchanged after terminating %s",
                               state.time, old_cycle, victim.name)
                break

            rounds += 1

        if state.cycle and rounds >= MAX_RESOLUTION_ROUNDS:
            state.events.append(events.warning(
                state.time, "Deadlock resolution aborted - too many iterations"))
            logger.warning("t=%d deadlock resolution did not converge after %d rounds",
                           state.time, rounds)

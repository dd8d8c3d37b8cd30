import logging
import random
import sys
from typing import Optional

from mlfq_sim import events
from mlfq_sim.deadlock import add_wait_edge, remove_outgoing_edges
from mlfq_sim.models import (
    BlockedReason, Process, ProcState, Resource, ResourcePolicy, SimulationState,
)
from mlfq_sim.queues import make_ready

logger = logging.getLogger(__name__)

# Deferred plan split: 30% no resources, 40% one, 30% two
PLAN_NONE = 0.3
PLAN_ONE = 0.7


class ResourceManager:
    """Allocation and release protocol for single-instance resources"""

    def __init__(self, state: SimulationState, rng: random.Random):
        self.state = state
        self.rng = rng

    def assign_plan(self, proc: Process):
        """Draw a random resource plan for a process created without one (once)"""
        if proc.plan_assigned:
            return
        proc.plan_assigned = True
        if proc.required or proc.acquired:
            return

        names = list(self.state.resources)
        draw = self.rng.random()
        if draw < PLAN_NONE:
            return
        if draw < PLAN_ONE:
            if names:
                proc.required = [self.rng.choice(names)]
        elif len(names) >= 2:
            first = self.rng.choice(names)
            second = self.rng.choice(names)
            if second == first:
                second = next(name for name in names if name != first)
            proc.required = [first, second]
        elif len(names) == 1:
            proc.required = [names[0]]
        logger.debug("Resource plan for %s: %s", proc.name, proc.required)

    def allocate_next(self, proc: Process) -> bool:
        """Try to acquire the next resource of the plan; False means the process is now blocked"""
        state = self.state
        self.assign_plan(proc)

        name = proc.next_required
        if name is None:
            return True

        resource = state.resources.get(name)
        if resource is None:
            # Removed from the system, nothing left to wait for
            proc.acquired.append(name)
            return True

        if resource.owner is None:
            resource.owner = proc.pid
            proc.acquired.append(name)
            if proc.pid in resource.wait_queue:
                resource.wait_queue.remove(proc.pid)
            remove_outgoing_edges(state, proc.pid)
            state.events.append(events.allocated(state.time, proc.pid, proc.name, name))
            return True

        if resource.owner == proc.pid:
            proc.acquired.append(name)
            return True

        if proc.pid not in resource.wait_queue:
            resource.wait_queue.append(proc.pid)
            add_wait_edge(state, proc.pid, resource.owner)
            state.events.append(events.waiting(state.time, proc.pid, proc.name, name, resource.owner))
        proc.state = ProcState.BLOCKED
        proc.blocked_reason = BlockedReason.RESOURCE
        return False

    def choose_next_waiter(self, resource: Resource) -> Optional[int]:
        """Remove and return the next holder according to the resource policy"""
        queue = resource.wait_queue
        if not queue:
            return None
        if resource.policy == ResourcePolicy.FIFO:
            return queue.pop(0)

        def priority_of(pid):
            proc = self.state.get(pid)
            return proc.priority if proc is not None else sys.maxsize

        # Lowest priority number wins, ties go to the earlier queue position
        index = min(range(len(queue)), key=lambda i: (priority_of(queue[i]), i))
        return queue.pop(index)

    def release_all(self, proc: Process):
        """Release everything a process holds, handing each resource to its next waiter"""
        state = self.state
        for name in proc.acquired:
            resource = state.resources.get(name)
            if resource is None or resource.owner != proc.pid:
                continue
            resource.owner = None
            state.events.append(events.released(state.time, proc.pid, proc.name, name))

            next_pid = self.choose_next_waiter(resource)
            if next_pid is None:
                continue
            resource.owner = next_pid
            waiter = state.get(next_pid)
            if waiter is None:
                continue

            waiter.acquired.append(name)
            remove_outgoing_edges(state, next_pid)
            # Whoever is still queued now waits on the new owner
            for pid in resource.wait_queue:
                state.wait_for[pid] = [next_pid]

            if waiter.state == ProcState.BLOCKED and waiter.blocked_reason == BlockedReason.RESOURCE:
                make_ready(state, waiter)
                state.events.append(events.resumed(state.time, waiter.pid, waiter.name, name))
        proc.acquired = []


def add_resource(state: SimulationState, name: str) -> SimulationState:
    """Define a new resource; empty or duplicate names are ignored"""
    name = (name or "").strip()
    if not name or name in state.resources:
        logger.debug("add_resource ignored for %r", name)
        return state
    draft = state.copy()
    draft.resources[name] = Resource(name)
    return draft


def remove_resource(state: SimulationState, name: str) -> SimulationState:
    """Delete a resource unless it is owned or has waiters"""
    resource = state.resources.get(name)
    if resource is None or resource.in_use:
        logger.debug("remove_resource ignored for %r", name)
        return state
    draft = state.copy()
    del draft.resources[name]
    return draft


def set_resource_policy(state: SimulationState, name: str, policy) -> SimulationState:
    """Change waiter selection for future hand-offs; the queue itself is not reordered"""
    if name not in state.resources:
        logger.debug("set_resource_policy ignored for %r", name)
        return state
    try:
        policy = ResourcePolicy(policy)
    except ValueError:
        logger.debug("set_resource_policy ignored unknown policy %r", policy)
        return state
    draft = state.copy()
    draft.resources[name].policy = policy
    return draft

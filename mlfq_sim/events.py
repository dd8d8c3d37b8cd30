"""Structured simulation events.

The engine records what happened on each tick as :class:`Event` records.
Rendering collaborators read the textual projection ``t=<tick>: <message>``
and classify lines by substring ("allocated", "waiting for", "released",
"resumed", "Preempt", "demoted", "finished", "arrived"), so the message
wording below is part of the public contract.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence


class EventKind(Enum):
    ARRIVAL = "arrival"
    ALLOCATED = "allocated"
    WAITING = "waiting"
    RELEASED = "released"
    RESUMED = "resumed"
    PREEMPTED = "preempted"
    DEMOTED = "demoted"
    FINISHED = "finished"
    PROMOTION = "promotion"
    IO_START = "io_start"
    IO_COMPLETE = "io_complete"
    DEADLOCK = "deadlock"
    VICTIM = "victim"
    RESOLVED = "resolved"
    WARNING = "warning"


RESOURCE_KINDS = (EventKind.ALLOCATED, EventKind.RELEASED, EventKind.WAITING, EventKind.RESUMED)


@dataclass(frozen=True)
class Event:
    """A single entry of the simulation event log"""
    tick: int
    kind: EventKind
    message: str
    pid: Optional[int] = None
    resource: Optional[str] = None

    def render(self) -> str:
        return f"t={self.tick}: {self.message}"

    def __str__(self):
        return self.render()


def arrived(tick: int, pid: int, name: str, level: int) -> Event:
    return Event(tick, EventKind.ARRIVAL, f"{name} arrived → Q{level}", pid)


def allocated(tick: int, pid: int, name: str, resource: str) -> Event:
    return Event(tick, EventKind.ALLOCATED, f"{name} allocated {resource}", pid, resource)


def waiting(tick: int, pid: int, name: str, resource: str, owner: int) -> Event:
    return Event(tick, EventKind.WAITING,
                 f"{name} waiting for {resource} (owned by P{owner})", pid, resource)


def released(tick: int, pid: int, name: str, resource: str) -> Event:
    return Event(tick, EventKind.RELEASED, f"{name} released {resource}", pid, resource)


def resumed(tick: int, pid: int, name: str, resource: str) -> Event:
    return Event(tick, EventKind.RESUMED, f"{name} resumed (acquired {resource})", pid, resource)


def preempted(tick: int, pid: int, name: str) -> Event:
    return Event(tick, EventKind.PREEMPTED, f"Preempt {name} (higher priority arrived)", pid)


def demoted(tick: int, pid: int, name: str) -> Event:
    return Event(tick, EventKind.DEMOTED, f"{name} demoted to Q1 (quantum exhausted)", pid)


def finished(tick: int, pid: int, name: str, algo: str) -> Event:
    return Event(tick, EventKind.FINISHED, f"{name} finished (via {algo})", pid)


def promoted(tick: int, pid: int, name: str, level: int) -> Event:
    return Event(tick, EventKind.PROMOTION, f"Aging promotion → {name} to Q{level}", pid)


def io_started(tick: int, pid: int, name: str, length: int) -> Event:
    return Event(tick, EventKind.IO_START, f"{name} begins I/O (blocks for {length})", pid)


def io_completed(tick: int, pid: int, name: str) -> Event:
    return Event(tick, EventKind.IO_COMPLETE, f"{name} I/O complete, ready", pid)


def cycle_detected(tick: int, cycle: Sequence[int]) -> Event:
    path = " → ".join(str(pid) for pid in cycle)
    return Event(tick, EventKind.DEADLOCK, f"Deadlock cycle detected: [{path}]")


def victim_chosen(tick: int, pid: int, name: str, priority: int, arrival: int) -> Event:
    return Event(tick, EventKind.VICTIM,
                 f"Terminating victim {name} (priority={priority}, arrival={arrival})", pid)


def deadlock_resolved(tick: int) -> Event:
    return Event(tick, EventKind.RESOLVED, "Deadlock resolved successfully")


def warning(tick: int, message: str) -> Event:
    return Event(tick, EventKind.WARNING, message)


def events_for_process(events: Iterable[Event], pid: int, name: str) -> List[Event]:
    """Events about a process, or mentioning its display name or P<id> as a whole word"""
    mention = re.compile(rf"(?<!\w)(?:P{pid}|{re.escape(name)})(?!\w)")
    return [e for e in events if e.pid == pid or mention.search(e.message)]


def resource_events(events: Iterable[Event]) -> List[Event]:
    """Only allocation, wait, release and resume events"""
    return [e for e in events if e.kind in RESOURCE_KINDS]

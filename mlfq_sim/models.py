from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Dict, Optional

from mlfq_sim.events import Event


class ProcessType(Enum):
    """Process class, decides the queue a process starts in"""
    INTERACTIVE = "Interactive"
    IMPORTANT = "Important"
    BATCH = "Batch"


class ProcState(Enum):
    """Lifecycle states of a simulated process"""
    NEW = "new"
    READY = "ready"
    RUNNING = "running"
    BLOCKED = "blocked"
    FINISHED = "finished"


class BlockedReason(Enum):
    RESOURCE = "resource"
    IO = "io"


class ResourcePolicy(Enum):
    """How the next holder is chosen from a resource wait queue"""
    FIFO = "FIFO"
    PRIORITY = "Priority"


class AlgoKey(Enum):
    """Algorithm a process finished under, derived from its queue level"""
    RR = "RR"
    PRIORITY = "Priority"
    FCFS = "FCFS"


QUEUE_FOR_TYPE = {
    ProcessType.INTERACTIVE: 0,
    ProcessType.IMPORTANT: 1,
    ProcessType.BATCH: 2,
}

ALGO_FOR_LEVEL = {
    0: AlgoKey.RR,
    1: AlgoKey.PRIORITY,
    2: AlgoKey.FCFS,
}

DEFAULT_RESOURCES = ("R1", "R2", "R3")


def parse_process_type(value) -> ProcessType:
    """Accept a ProcessType or its display string"""
    if isinstance(value, ProcessType):
        return value
    for ptype in ProcessType:
        if ptype.value == value:
            return ptype
    raise ValueError(f"Unknown process type: {value!r}")


@dataclass(frozen=True)
class HistorySample:
    """One executed tick of a process and the queue it ran in"""
    t: int
    q: int


@dataclass(frozen=True)
class TimelineItem:
    """One tick of the CPU timeline; pid is None when the CPU was idle"""
    t: int
    pid: Optional[int] = None
    q: Optional[int] = None


@dataclass
class Process:
    """Represents a process in the simulation"""
    pid: int
    name: str
    arrival: int
    burst: int
    priority: int  # lower number = higher priority, compared only in Q1
    ptype: ProcessType
    remaining: int = field(init=False)
    state: ProcState = ProcState.NEW
    queue_level: int = field(init=False)
    blocked_reason: Optional[BlockedReason] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    required: List[str] = field(default_factory=list)
    acquired: List[str] = field(default_factory=list)
    history: List[HistorySample] = field(default_factory=list)
    finished_by: Optional[AlgoKey] = None
    age_wait: int = 0
    io_block_remaining: int = 0
    total_io_blocked: int = 0
    plan_assigned: bool = False  # deferred random resource plan already drawn

    def __post_init__(self):
        self.remaining = self.burst
        self.queue_level = QUEUE_FOR_TYPE[self.ptype]

    def copy(self) -> "Process":
        # Bypass __init__ so remaining/queue_level keep their runtime values
        clone = Process.__new__(Process)
        clone.__dict__.update(self.__dict__)
        clone.required = list(self.required)
        clone.acquired = list(self.acquired)
        clone.history = list(self.history)
        return clone

    @property
    def next_required(self) -> Optional[str]:
        """Next resource in the plan that has not been acquired yet"""
        if len(self.acquired) >= len(self.required):
            return None
        return self.required[len(self.acquired)]

    def __str__(self):
        return (f"P{self.pid} {self.name} [{self.ptype.value}] "
                f"state={self.state.value} Q{self.queue_level} "
                f"remaining={self.remaining}/{self.burst} priority={self.priority}")


@dataclass
class Resource:
    """Represents a single-instance, non-reentrant resource"""
    name: str
    owner: Optional[int] = None
    policy: ResourcePolicy = ResourcePolicy.FIFO
    wait_queue: List[int] = field(default_factory=list)

    def copy(self) -> "Resource":
        return Resource(self.name, self.owner, self.policy, list(self.wait_queue))

    @property
    def in_use(self) -> bool:
        return self.owner is not None or len(self.wait_queue) > 0


@dataclass
class AgingSettings:
    enabled: bool = False
    threshold: int = 10


@dataclass
class IoSettings:
    enabled: bool = False
    block_length: int = 3


@dataclass
class DeadlockSettings:
    auto_resolve: bool = True


@dataclass
class SchedulerSettings:
    """Engine configuration carried inside the snapshot"""
    aging: AgingSettings = field(default_factory=AgingSettings)
    io: IoSettings = field(default_factory=IoSettings)
    deadlock: DeadlockSettings = field(default_factory=DeadlockSettings)

    def copy(self) -> "SchedulerSettings":
        return SchedulerSettings(
            aging=replace(self.aging),
            io=replace(self.io),
            deadlock=replace(self.deadlock),
        )


@dataclass
class SimulationState:
    """Complete simulation snapshot, operations never mutate a snapshot they receive"""
    time: int = 0
    processes: Dict[int, Process] = field(default_factory=dict)  # pid -> process, in creation order
    finished_order: List[int] = field(default_factory=list)
    current: Optional[int] = None
    queues: List[List[int]] = field(default_factory=lambda: [[], [], []])
    rr_slice: int = 0
    timeline: List[TimelineItem] = field(default_factory=list)
    resources: Dict[str, Resource] = field(default_factory=dict)
    wait_for: Dict[int, List[int]] = field(default_factory=dict)  # blocked pid -> owner pids
    cycle: List[int] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    config: SchedulerSettings = field(default_factory=SchedulerSettings)
    next_pid: int = 1

    def copy(self) -> "SimulationState":
        """Build an independent draft of this snapshot"""
        return SimulationState(
            time=self.time,
            processes={pid: p.copy() for pid, p in self.processes.items()},
            finished_order=list(self.finished_order),
            current=self.current,
            queues=[list(q) for q in self.queues],
            rr_slice=self.rr_slice,
            timeline=list(self.timeline),
            resources={name: r.copy() for name, r in self.resources.items()},
            wait_for={pid: list(owners) for pid, owners in self.wait_for.items()},
            cycle=list(self.cycle),
            events=list(self.events),
            config=self.config.copy(),
            next_pid=self.next_pid,
        )

    @property
    def q0(self) -> List[int]:
        return self.queues[0]

    @property
    def q1(self) -> List[int]:
        return self.queues[1]

    @property
    def q2(self) -> List[int]:
        return self.queues[2]

    @property
    def log(self) -> List[str]:
        """Event log rendered as t=<tick>: <message> lines"""
        return [event.render() for event in self.events]

    def get(self, pid: Optional[int]) -> Optional[Process]:
        if pid is None:
            return None
        return self.processes.get(pid)

    @property
    def current_process(self) -> Optional[Process]:
        return self.get(self.current)

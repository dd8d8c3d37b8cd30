"""Multi-level feedback queue scheduler simulation with resource deadlocks."""
from mlfq_sim.events import Event, EventKind
from mlfq_sim.metrics import Metrics, compute_metrics, format_comparison_table
from mlfq_sim.models import (
    AlgoKey, BlockedReason, Process, ProcessType, ProcState, Resource,
    ResourcePolicy, SchedulerSettings, SimulationState,
)
from mlfq_sim.presets import PRESET_KEYS, apply_preset
from mlfq_sim.resources import add_resource, remove_resource, set_resource_policy
from mlfq_sim.scheduler import (
    MLFQScheduler, ProcessSpec, add_process, create_initial, generate_random,
    is_complete, reset, resolve_deadlock, run_until_idle, step, update_settings,
)

__version__ = "0.1.0"

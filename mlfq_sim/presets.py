from typing import Dict, List

from mlfq_sim.models import ProcessType, SimulationState
from mlfq_sim.scheduler import ProcessSpec, append_process, create_initial

INTERACTIVE = ProcessType.INTERACTIVE
IMPORTANT = ProcessType.IMPORTANT
BATCH = ProcessType.BATCH

# name, burst, arrival, priority, type, required resources
PRESET_PROCESSES: Dict[str, List[ProcessSpec]] = {
    "deadlock": [
        ProcessSpec("P1", 6, 0, 2, IMPORTANT, ["R1", "R2"]),
        ProcessSpec("P2", 6, 0, 2, IMPORTANT, ["R2", "R1"]),
        ProcessSpec("P3", 5, 1, 3, BATCH, []),
    ],
    "no-deadlock": [
        ProcessSpec("P1", 6, 0, 2, IMPORTANT, ["R1", "R2"]),
        ProcessSpec("P2", 6, 0, 1, IMPORTANT, ["R1", "R2"]),
        ProcessSpec("P3", 4, 2, 3, INTERACTIVE, []),
    ],
    "heavy-io": [
        *[ProcessSpec(f"I{i + 1}", 10, i % 2, 2, INTERACTIVE, []) for i in range(5)],
        ProcessSpec("B1", 14, 0, 4, BATCH, []),
        ProcessSpec("B2", 12, 3, 4, BATCH, []),
    ],
    "starvation": [
        ProcessSpec("HI1", 8, 0, 0, IMPORTANT),
        ProcessSpec("HI2", 8, 1, 0, IMPORTANT),
        ProcessSpec("HI3", 8, 2, 0, IMPORTANT),
        ProcessSpec("HI4", 8, 3, 0, IMPORTANT),
        ProcessSpec("BatchStarve", 20, 0, 4, BATCH),
    ],
    "mixed": [
        ProcessSpec("I1", 9, 0, 2, INTERACTIVE, []),
        ProcessSpec("I2", 7, 1, 1, INTERACTIVE, ["R1"]),
        ProcessSpec("IMP1", 10, 2, 0, IMPORTANT, ["R2"]),
        ProcessSpec("B1", 15, 0, 4, BATCH, []),
        ProcessSpec("B2", 11, 3, 3, BATCH, ["R2", "R3"]),
    ],
}

PRESET_KEYS = tuple(PRESET_PROCESSES)


def _configure(state: SimulationState, key: str):
    config = state.config
    if key == "heavy-io":
        config.io.enabled = True
        config.io.block_length = 3
    elif key == "starvation":
        config.aging.enabled = False
    elif key == "mixed":
        config.aging.enabled = True
        config.aging.threshold = 12
        config.io.enabled = True
        config.io.block_length = 2


def apply_preset(state: SimulationState, key: str) -> SimulationState:
    """Replace the whole simulation with one of the demonstration scenarios"""
    if key not in PRESET_PROCESSES:
        raise ValueError(f"Unknown preset {key!r}, expected one of {', '.join(PRESET_KEYS)}")
    fresh = create_initial()
    _configure(fresh, key)
    for spec in PRESET_PROCESSES[key]:
        append_process(fresh, spec)
    return fresh

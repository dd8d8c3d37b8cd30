"""Matplotlib views of a simulation snapshot."""
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Patch

from mlfq_sim.metrics import Metrics
from mlfq_sim.models import SimulationState

QUEUE_COLORS = {
    0: "#14b8a6",  # Q0 round robin
    1: "#f59e0b",  # Q1 priority
    2: "#64748b",  # Q2 FCFS
}
CYCLE_COLOR = "#e11d48"
EDGE_COLOR = "#475569"


def _figure_and_axes(ax, figsize):
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure
    return fig, ax


def plot_timeline(state: SimulationState, ax: Optional[plt.Axes] = None):
    """Gantt chart with one lane per process, coloured by the queue it ran in"""
    procs = sorted(state.processes.values(), key=lambda p: p.pid)
    fig, ax = _figure_and_axes(ax, (10, 0.5 * len(procs) + 2))

    for row, proc in enumerate(procs):
        for level, color in QUEUE_COLORS.items():
            spans = [(h.t, 1) for h in proc.history if h.q == level]
            if spans:
                ax.broken_barh(spans, (row - 0.4, 0.8), facecolors=color, edgecolor="white")

    ax.set_yticks(np.arange(len(procs)))
    ax.set_yticklabels([p.name for p in procs])
    ax.invert_yaxis()
    ax.set_xlim(0, max(state.time, len(state.timeline), 1))
    ax.set_xlabel("Time")
    ax.set_title("Execution timeline")
    ax.legend(handles=[Patch(color=c, label=f"Q{q}") for q, c in QUEUE_COLORS.items()],
              loc="upper right")
    return fig


def plot_algorithm_metrics(metrics: Metrics, ax: Optional[plt.Axes] = None):
    """Grouped bars of average waiting, turnaround and weighted turnaround per algorithm"""
    fig, ax = _figure_and_axes(ax, (8, 4))

    names = list(metrics.by_algo)
    series = [
        ("Avg Waiting", [metrics.by_algo[n].avg_waiting for n in names]),
        ("Avg Turnaround", [metrics.by_algo[n].avg_turnaround for n in names]),
        ("Avg Weighted", [metrics.by_algo[n].avg_weighted for n in names]),
    ]
    x = np.arange(len(names))
    width = 0.25
    for i, (label, values) in enumerate(series):
        ax.bar(x + (i - 1) * width, values, width, label=label)

    ax.set_xticks(x)
    ax.set_xticklabels(names)
    ax.set_ylabel("Time units")
    ax.set_title("Metrics by terminating algorithm")
    ax.legend()
    return fig


def plot_wait_for_graph(state: SimulationState, ax: Optional[plt.Axes] = None):
    """Wait-for graph on a circle; processes and edges of the detected cycle in red"""
    fig, ax = _figure_and_axes(ax, (5, 5))
    ax.set_axis_off()
    ax.set_title("Wait-for graph")

    nodes = sorted(set(state.wait_for) | {o for owners in state.wait_for.values() for o in owners})
    if not nodes:
        ax.text(0.5, 0.5, "No waits", ha="center", va="center", transform=ax.transAxes)
        return fig

    angles = np.linspace(0, 2 * np.pi, len(nodes), endpoint=False)
    positions = {pid: (np.cos(a), np.sin(a)) for pid, a in zip(nodes, angles)}
    cycle = set(state.cycle)

    for waiter, owners in state.wait_for.items():
        for owner in owners:
            in_cycle = waiter in cycle and owner in cycle
            ax.annotate("", xy=positions[owner], xytext=positions[waiter],
                        arrowprops=dict(arrowstyle="->", shrinkA=14, shrinkB=14,
                                        color=CYCLE_COLOR if in_cycle else EDGE_COLOR))

    for pid, (x, y) in positions.items():
        proc = state.get(pid)
        label = proc.name if proc is not None else f"P{pid}"
        ax.scatter([x], [y], s=900, color=CYCLE_COLOR if pid in cycle else QUEUE_COLORS[2], zorder=2)
        ax.text(x, y, label, ha="center", va="center", color="white", zorder=3)

    ax.set_xlim(-1.4, 1.4)
    ax.set_ylim(-1.4, 1.4)
    ax.set_aspect("equal")
    return fig

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from mlfq_sim.models import AlgoKey, Process, ProcessType, ProcState, SimulationState


@dataclass
class ProcessRecord:
    """Per-process results of a finished process"""
    pid: int
    name: str
    arrival: int
    burst: int
    priority: int
    ptype: ProcessType
    start_time: Optional[int]
    end_time: Optional[int]
    waiting_time: int
    turnaround_time: int
    weighted_turnaround: float
    finished_by: Optional[AlgoKey]


@dataclass
class AlgorithmSummary:
    rows: List[ProcessRecord] = field(default_factory=list)
    avg_waiting: float = 0.0
    avg_turnaround: float = 0.0
    avg_weighted: float = 0.0


@dataclass
class OverallSummary:
    avg_waiting: float
    avg_turnaround: float
    avg_weighted: float
    finished: int
    total: int


@dataclass
class Metrics:
    """Statistics derived from a snapshot"""
    cpu_util: float
    by_algo: Dict[str, AlgorithmSummary]
    overall: OverallSummary
    totals: Dict[str, int]


def _mean(values) -> float:
    return float(np.mean(values)) if len(values) else 0.0


def _sum(values) -> int:
    return int(np.sum(values)) if len(values) else 0


def _record(proc: Process, now: int) -> ProcessRecord:
    end = proc.end_time if proc.end_time is not None else now
    turnaround = end - proc.arrival
    return ProcessRecord(
        pid=proc.pid,
        name=proc.name,
        arrival=proc.arrival,
        burst=proc.burst,
        priority=proc.priority,
        ptype=proc.ptype,
        start_time=proc.start_time,
        end_time=proc.end_time,
        waiting_time=turnaround - proc.burst,
        turnaround_time=turnaround,
        weighted_turnaround=turnaround / proc.burst if proc.burst else 0.0,
        finished_by=proc.finished_by,
    )


def _summarize(rows: List[ProcessRecord]) -> AlgorithmSummary:
    return AlgorithmSummary(
        rows=rows,
        avg_waiting=_mean([r.waiting_time for r in rows]),
        avg_turnaround=_mean([r.turnaround_time for r in rows]),
        avg_weighted=_mean([r.weighted_turnaround for r in rows]),
    )


def compute_metrics(state: SimulationState) -> Metrics:
    """Calculate performance metrics of every finished process, grouped by algorithm"""
    active_ticks = sum(1 for item in state.timeline if item.pid is not None)
    cpu_util = active_ticks * 100 / state.time if state.time > 0 else 0.0

    records = [
        _record(p, state.time) for p in state.processes.values()
        if p.state == ProcState.FINISHED
    ]
    by_algo = {
        algo.value: _summarize([r for r in records if r.finished_by == algo])
        for algo in AlgoKey
    }
    overall_summary = _summarize(records)
    overall = OverallSummary(
        avg_waiting=overall_summary.avg_waiting,
        avg_turnaround=overall_summary.avg_turnaround,
        avg_weighted=overall_summary.avg_weighted,
        finished=len(records),
        total=len(state.processes),
    )
    totals = {
        "waiting": _sum([r.waiting_time for r in records]),
        "turnaround": _sum([r.turnaround_time for r in records]),
    }
    return Metrics(cpu_util=cpu_util, by_algo=by_algo, overall=overall, totals=totals)


def per_process_metrics(proc: Process) -> Optional[Dict[str, float]]:
    """Waiting, turnaround and weighted turnaround, None until the process has ended"""
    if proc.end_time is None:
        return None
    turnaround = proc.end_time - proc.arrival
    return {
        "waiting": turnaround - proc.burst,
        "turnaround": turnaround,
        "weighted": turnaround / proc.burst if proc.burst else 0.0,
    }


def queue_transitions(proc: Process) -> List[tuple]:
    """Execution history reduced to the ticks where the queue level changed"""
    history = sorted(proc.history, key=lambda h: h.t)
    transitions = []
    for sample in history:
        if not transitions or transitions[-1][1] != sample.q:
            transitions.append((sample.t, sample.q))
    return transitions


def format_comparison_table(metrics: Metrics) -> str:
    """Per-algorithm results as a text table followed by a short analysis"""
    table = "+------------+----------+------------+------------+------------+\n"
    table += "| Algorithm  | Finished | Avg WT     | Avg TAT    | Avg WTAT   |\n"
    table += "+============+==========+============+============+============+\n"

    for name, summary in metrics.by_algo.items():
        table += f"| {name:<10} | {len(summary.rows):>8} | {summary.avg_waiting:>10.2f} | "
        table += f"{summary.avg_turnaround:>10.2f} | {summary.avg_weighted:>10.2f} |\n"

    overall = metrics.overall
    table += "+------------+----------+------------+------------+------------+\n"
    table += f"| {'Overall':<10} | {overall.finished:>8} | {overall.avg_waiting:>10.2f} | "
    table += f"{overall.avg_turnaround:>10.2f} | {overall.avg_weighted:>10.2f} |\n"
    table += "+------------+----------+------------+------------+------------+\n"

    analysis = "\n=== ANALYSIS ===\n"
    used = [(name, s) for name, s in metrics.by_algo.items() if s.rows]
    if used:
        best_wt = min(used, key=lambda x: x[1].avg_waiting)
        best_tat = min(used, key=lambda x: x[1].avg_turnaround)
        best_weighted = min(used, key=lambda x: x[1].avg_weighted)
        analysis += f"Best Average Waiting Time: {best_wt[0]} ({best_wt[1].avg_waiting:.2f})\n"
        analysis += f"Best Average Turnaround Time: {best_tat[0]} ({best_tat[1].avg_turnaround:.2f})\n"
        analysis += f"Best Average Weighted Turnaround: {best_weighted[0]} ({best_weighted[1].avg_weighted:.2f})\n"
    else:
        analysis += "No finished processes yet.\n"
    analysis += f"CPU Utilization: {metrics.cpu_util:.2f}%\n"

    return table + analysis

import argparse
import logging
import os
import random

from mlfq_sim.metrics import compute_metrics, format_comparison_table
from mlfq_sim.presets import PRESET_KEYS, apply_preset
from mlfq_sim.scheduler import (
    DEFAULT_QUANTUM, create_initial, generate_random, is_complete, step, update_settings,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mlfq-sim",
        description="Multi-level feedback queue scheduler with resource deadlocks")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--preset", choices=PRESET_KEYS, default="mixed",
                        help="Demonstration scenario to load (default: mixed)")
    source.add_argument("--random", action="store_true",
                        help="Generate 10 random processes instead of a preset")
    parser.add_argument("--quantum", type=int, default=DEFAULT_QUANTUM,
                        help="Q0 round robin quantum")
    parser.add_argument("--ticks", type=int, default=200, help="Maximum number of ticks to run")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible runs")
    parser.add_argument("--aging", action="store_true", default=None, help="Enable aging")
    parser.add_argument("--aging-threshold", type=int, default=None)
    parser.add_argument("--io", action="store_true", default=None, help="Enable simulated I/O")
    parser.add_argument("--io-block", type=int, default=None, help="I/O block length in ticks")
    parser.add_argument("--no-auto-resolve", action="store_true",
                        help="Leave detected deadlocks in place")
    parser.add_argument("--charts", metavar="DIR", default=None,
                        help="Write timeline, metrics and wait-for PNG charts into DIR")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def save_charts(state, metrics, directory: str):
    """Render the three charts as PNG files"""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    from mlfq_sim.charts import plot_algorithm_metrics, plot_timeline, plot_wait_for_graph

    os.makedirs(directory, exist_ok=True)
    for filename, fig in (
        ("timeline.png", plot_timeline(state)),
        ("metrics.png", plot_algorithm_metrics(metrics)),
        ("wait_for.png", plot_wait_for_graph(state)),
    ):
        path = os.path.join(directory, filename)
        fig.savefig(path, bbox_inches="tight")
        plt.close(fig)
        logger.info("Saved %s", path)


def main(argv=None):
    args = build_parser().parse_args(argv)
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(levelname)s - %(message)s")

    rng = random.Random(args.seed)
    if args.random:
        state = generate_random(create_initial(), rng)
    else:
        state = apply_preset(create_initial(), args.preset)
    state = update_settings(
        state,
        aging_enabled=args.aging,
        aging_threshold=args.aging_threshold,
        io_enabled=args.io,
        io_block_length=args.io_block,
        auto_resolve=False if args.no_auto_resolve else None,
    )

    for _ in range(max(0, args.ticks)):
        if is_complete(state):
            break
        state = step(state, args.quantum, rng)

    print("=== EVENT LOG ===")
    for line in state.log:
        print(line)
    if state.cycle:
        print(f"\nUnresolved deadlock cycle: {state.cycle}")

    metrics = compute_metrics(state)
    print("\n=== ALGORITHM COMPARISON ===\n")
    print(format_comparison_table(metrics))

    if args.charts:
        save_charts(state, metrics, args.charts)
    return 0


if __name__ == "__main__":
    main()

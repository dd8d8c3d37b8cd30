import os

from mlfq_sim.cli import build_parser, main


def test_defaults():
    args = build_parser().parse_args([])
    assert args.preset == "mixed"
    assert args.quantum == 3
    assert args.aging is None
    assert args.io is None


def test_run_preset(capsys):
    assert main(["--preset", "no-deadlock", "--seed", "3", "--ticks", "40"]) == 0
    out = capsys.readouterr().out
    assert "=== EVENT LOG ===" in out
    assert "t=0: P1 arrived → Q1" in out
    assert "=== ALGORITHM COMPARISON ===" in out
    assert "CPU Utilization:" in out


def test_run_random_with_charts(tmp_path, capsys):
    charts = tmp_path / "charts"
    assert main(["--random", "--seed", "5", "--ticks", "30", "--io", "--aging",
                 "--aging-threshold", "4", "--charts", str(charts)]) == 0
    for name in ("timeline.png", "metrics.png", "wait_for.png"):
        assert os.path.getsize(charts / name) > 0


def test_no_auto_resolve_run(capsys):
    assert build_parser().parse_args(["--no-auto-resolve"]).no_auto_resolve is True
    assert main(["--preset", "deadlock", "--seed", "1", "--ticks", "5", "--no-auto-resolve"]) == 0
    out = capsys.readouterr().out
    assert "t=0: P1 allocated R1" in out
    assert "Terminating victim" not in out

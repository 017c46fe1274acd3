from __future__ import annotations

import json

import pytest

from gravmpi.main import main


def _exit_code(argv):
    with pytest.raises(SystemExit) as ei:
        main(argv)
    return ei.value.code


def test_wrong_argument_count_prints_usage(capsys):
    assert _exit_code(["1.0", "1.0", "4"]) == 1
    cap = capsys.readouterr()
    assert cap.out == ""
    assert "incorrect number of arguments" in cap.err
    assert "Usage:" in cap.err


def test_non_numeric_argument_is_usage_error(capsys):
    assert _exit_code(["1.0", "1.0", "four", "1", "1", "--transport", "serial"]) == 1
    assert capsys.readouterr().out == ""


def test_serial_run_writes_header_bodies_and_trace(capsys):
    main(["1.0", "1.0", "4", "1", "1", "--transport", "serial", "--seed", "5"])
    out = capsys.readouterr().out.splitlines()
    assert out[:3] == ["4", "1.000000", "1.000000"]
    assert len(out) == 3 + 16 + 4
    assert out[4] == "0.000000 0.000000"


def test_optional_scale_argument_accepted(capsys):
    main(["0.2", "0.1", "2", "10", "1", "0", "--transport", "serial", "--seed", "1"])
    out = capsys.readouterr().out.splitlines()
    # zero scale -> zero initial velocity
    assert [float(x) for x in out[5].split()] == [0.0, 0.0]
    assert len(out) == 3 + 8 + 2 * 2


def test_threads_invalid_partition_produces_no_output(capsys):
    code = _exit_code(["1", "1", "10", "1", "1", "--transport", "threads", "--workers", "3"])
    assert code == 1
    cap = capsys.readouterr()
    assert cap.out == ""
    assert "not divisible" in cap.err


def test_threads_run_matches_serial_output(capsys):
    args = ["0.03", "0.01", "8", "100", "0.5", "--seed", "2"]
    main(args + ["--transport", "serial"])
    serial = capsys.readouterr().out
    main(args + ["--transport", "threads", "--workers", "4"])
    threaded = capsys.readouterr().out
    assert serial.splitlines()[:35] == threaded.splitlines()[:35]
    assert len(serial.splitlines()) == len(threaded.splitlines())


def test_out_file_and_manifest(tmp_path, capsys):
    out = tmp_path / "run" / "out.txt"
    out.parent.mkdir()
    main(["0.2", "0.1", "4", "1", "1", "--transport", "serial", "--seed", "3", "--out", str(out)])
    assert capsys.readouterr().out == ""
    lines = out.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3 + 16 + 2 * 4
    manifest = json.loads((tmp_path / "run" / "out.txt.manifest.json").read_text(encoding="utf-8"))
    assert manifest["body_count"] == 4
    assert manifest["iterations"] == 2
    assert manifest["records"]["trace_lines"] == 8
    assert manifest["transport"] == "serial"


def test_config_file_run(tmp_path, capsys):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        """
simulation:
  time_period: 0.2
  delta_time: 0.1
  body_count: 4
  initial_body_mass: 1.0
  softening_length: 1.0
  seed: 4
run:
  transport: threads
  workers: 2
""",
        encoding="utf-8",
    )
    main(["--config", str(cfg)])
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "4"
    assert len(out) == 3 + 16 + 8


def test_config_and_positionals_conflict(tmp_path, capsys):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("simulation: {}\n", encoding="utf-8")
    assert _exit_code(["1", "1", "4", "1", "1", "--config", str(cfg)]) == 1
    assert "cannot be combined" in capsys.readouterr().err


def test_verify_partition_invariance(capsys):
    assert _exit_code(["0.05", "0.01", "8", "1000", "0.1", "--verify", "4", "--seed", "1"]) == 0
    err = capsys.readouterr().err
    assert "[verify] workers=4" in err
    assert "ok=True" in err


def test_metrics_and_plots(tmp_path, capsys):
    metrics = tmp_path / "metrics.csv"
    plots = tmp_path / "plots"
    main([
        "0.05", "0.01", "4", "10", "0.5", "--transport", "serial", "--seed", "1",
        "--metrics", str(metrics), "--plots", str(plots),
    ])
    cap = capsys.readouterr()
    assert len(metrics.read_text(encoding="utf-8").splitlines()) == 1 + 5
    assert (plots / "energy.png").exists()
    assert "[plots] 3 figures" in cap.err


def test_plots_without_metrics_is_usage_error(capsys):
    assert _exit_code(["1", "1", "4", "1", "1", "--plots", "p"]) == 1
    assert "--plots requires --metrics" in capsys.readouterr().err


def test_decimal_period_runs_truncated_single_precision_iterations(capsys):
    main(["0.3", "0.1", "2", "10", "1", "--transport", "serial", "--seed", "1"])
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 3 + 4 * 2 + 3 * 2


@pytest.mark.parametrize(
    "text",
    [
        "simulation:\n  time_period: null\n  delta_time: 0.1\n  body_count: 2\n"
        "  initial_body_mass: 1.0\n  softening_length: 1.0\n",
        "simulation: [unclosed\n",
    ],
)
def test_bad_config_exits_with_error_line(tmp_path, capsys, text):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(text, encoding="utf-8")
    assert _exit_code(["--config", str(cfg)]) == 1
    cap = capsys.readouterr()
    assert cap.out == ""
    assert cap.err.startswith("[error]")

"""Tests for the power monitor sampling, CSV log and command."""

import itertools
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from opskit import cli_monitor
from opskit.models import MetricsSample
from opskit.monitor import (
    CSV_HEADER,
    MetricsLog,
    collect_metrics,
    cpu_percent,
    max_temperature,
    memory_percent,
    read_cpu_times,
    status_line,
)

runner = CliRunner()

MEMINFO = """MemTotal:        1000 kB
MemFree:          200 kB
MemAvailable:     600 kB
Buffers:          100 kB
Cached:           100 kB
SwapCached:         0 kB
"""


@pytest.fixture
def fake_proc(temp_dir: Path) -> Path:
    proc = temp_dir / "proc"
    proc.mkdir()
    (proc / "stat").write_text("cpu  100 0 100 800 0 0 0 0 0 0\ncpu0 1 2 3 4 5 6 7\n")
    (proc / "meminfo").write_text(MEMINFO)
    return proc


def test_read_cpu_times():
    times = read_cpu_times("cpu  1 2 3 4 5 6 7 8 9 10\nintr 1\n")
    assert times == {"user": 1, "nice": 2, "system": 3, "idle": 4, "iowait": 5, "irq": 6, "softirq": 7}


def test_read_cpu_times_rejects_garbage():
    with pytest.raises(ValueError):
        read_cpu_times("cpu 1 2\n")


def test_cpu_percent():
    first = dict(user=100, nice=0, system=100, idle=800, iowait=0, irq=0, softirq=0)
    second = dict(user=150, nice=0, system=150, idle=900, iowait=0, irq=0, softirq=0)
    assert cpu_percent(first, second) == pytest.approx(50.0)
    assert cpu_percent(first, first) == 0.0


def test_memory_percent():
    assert memory_percent(MEMINFO) == pytest.approx(60.0)


def test_memory_percent_missing_key():
    with pytest.raises(ValueError):
        memory_percent("MemTotal: 10 kB\n")


def test_max_temperature(temp_dir: Path):
    zone0 = temp_dir / "zone0"
    zone1 = temp_dir / "zone1"
    bad = temp_dir / "bad"
    zone0.write_text("41500\n")
    zone1.write_text("55250\n")
    bad.write_text("n/a\n")
    assert max_temperature([zone0, zone1, bad, temp_dir / "missing"]) == pytest.approx(55.25)
    assert max_temperature([]) == 0.0


def test_collect_metrics(fake_proc: Path):
    sleeps = []
    sample = collect_metrics(
        fake_proc,
        thermal_paths=[],
        sleep=sleeps.append,
        now=lambda: datetime(2024, 5, 1, 12, 30),
    )
    assert sleeps == [1]
    assert sample.timestamp == "2024-05-01T12:30:00"
    assert sample.cpu_percent == 0.0
    assert sample.memory_percent == pytest.approx(60.0)
    assert sample.temperature == 0.0


def test_metrics_log_writes_header_once(temp_dir: Path):
    path = temp_dir / "logs" / "metrics.csv"
    sample = MetricsSample("2024-05-01T12:30:00", 12.345, 60.0, 41.5)
    MetricsLog(path).append(sample)
    MetricsLog(path).append(sample)

    lines = path.read_text().splitlines()
    assert lines[0] == ",".join(CSV_HEADER)
    assert lines[1:] == ["2024-05-01T12:30:00,12.35,60.00,41.50"] * 2


def test_status_line():
    line = status_line(MetricsSample("t", 12.34, 56.78, 40.0))
    assert line == "CPU: 12.3% | Memory: 56.8% | Temp: 40.0°C"


def test_monitor_command(temp_dir: Path, fake_proc: Path):
    cfg_path = temp_dir / "cfg.toml"
    cfg_path.write_text(f'[monitor]\nproc_root = "{fake_proc.as_posix()}"\nthermal_paths = []\n')
    output = temp_dir / "out.csv"

    ticks = itertools.chain([0.0, 0.0, 0.5], itertools.repeat(2.0))
    with patch("opskit.monitor.time.sleep"), \
            patch("opskit.cli_monitor.time.sleep"), \
            patch("opskit.cli_monitor.time.monotonic", side_effect=lambda: next(ticks)):
        result = runner.invoke(
            cli_monitor.app,
            ["--duration", "1", "--interval", "0", "--output", str(output), "--config", str(cfg_path)],
        )

    assert result.exit_code == 0, result.output
    assert "Monitoring stopped" in result.output
    assert len(output.read_text().splitlines()) == 3
    assert result.stdout.count("\rCPU: ") == 2
    assert "\rCPU: 0.0% | Memory: 60.0% | Temp: 0.0°C\rCPU: " in result.stdout


def test_monitor_command_reports_read_errors(temp_dir: Path):
    cfg_path = temp_dir / "cfg.toml"
    cfg_path.write_text(f'[monitor]\nproc_root = "{(temp_dir / "nothing").as_posix()}"\n')
    result = runner.invoke(
        cli_monitor.app,
        ["--duration", "1", "--output", str(temp_dir / "out.csv"), "--config", str(cfg_path)],
    )
    assert result.exit_code == 1
    assert "Error:" in result.output

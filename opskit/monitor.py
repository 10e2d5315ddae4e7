"""Sample CPU, memory and temperature from ``/proc`` and ``/sys``.

CPU usage follows https://www.linuxhowtos.org/System/procstat.htm: two
reads of the aggregate ``cpu`` line, busy time over total time.  Memory
usage follows https://www.baeldung.com/linux/proc-meminfo and counts
buffers and page cache as free.
"""

from __future__ import annotations

import csv
import logging
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from .models import MetricsSample

logger = logging.getLogger(__name__)

CPU_FIELDS = ("user", "nice", "system", "idle", "iowait", "irq", "softirq")
CSV_HEADER = ("timestamp", "cpu_percent", "memory_percent", "temperature")


def read_cpu_times(proc_stat: str) -> Dict[str, int]:
    """Jiffy counters from the first line of ``/proc/stat``."""
    first = proc_stat.splitlines()[0] if proc_stat.strip() else ""
    values = first.split()[1:1 + len(CPU_FIELDS)]
    if len(values) < len(CPU_FIELDS):
        raise ValueError(f"unexpected /proc/stat line: {first!r}")
    return dict(zip(CPU_FIELDS, (int(v) for v in values)))


def cpu_percent(first: Dict[str, int], second: Dict[str, int]) -> float:
    total = sum(second.values()) - sum(first.values())
    if total <= 0:
        return 0.0
    idle = second["idle"] - first["idle"]
    return 100.0 * (total - idle) / total


def memory_percent(meminfo: str) -> float:
    def find(metric: str) -> int:
        match = re.search(rf"^{metric}:\s+(\d+)", meminfo, re.MULTILINE)
        if match is None:
            raise ValueError(f"{metric} missing from meminfo")
        return int(match.group(1))

    total = find("MemTotal")
    used = total - (find("MemFree") + find("Buffers") + find("Cached"))
    return 100.0 * used / total


def read_temperature(path: Path) -> Optional[float]:
    """Degrees Celsius from a thermal-zone file, or None if unavailable."""
    if not path.exists():
        return None
    try:
        return float(path.read_text().strip()) / 1000.0
    except (OSError, ValueError) as exc:
        logger.warning("Error reading temperature from %s: %s", path, exc)
        return None


def max_temperature(paths: Iterable[Path]) -> float:
    readings = [t for t in (read_temperature(p) for p in paths) if t is not None]
    return max(readings, default=0.0)


def collect_metrics(
    proc_root: Path = Path("/proc"),
    thermal_paths: Iterable[Path] = (),
    sleep: Optional[Callable[[float], None]] = None,
    now: Optional[Callable[[], datetime]] = None,
) -> MetricsSample:
    sleep = sleep or time.sleep
    now = now or datetime.now
    stat_path = proc_root / "stat"
    first = read_cpu_times(stat_path.read_text())
    sleep(1)
    second = read_cpu_times(stat_path.read_text())
    return MetricsSample(
        timestamp=now().isoformat(),
        cpu_percent=cpu_percent(first, second),
        memory_percent=memory_percent((proc_root / "meminfo").read_text()),
        temperature=max_temperature(thermal_paths),
    )


class MetricsLog:
    """Appends samples to a CSV file, writing the header for new files."""

    def __init__(self, path: Path) -> None:
        self.path = path
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", newline="", encoding="utf-8") as f:
                csv.writer(f).writerow(CSV_HEADER)

    def append(self, sample: MetricsSample) -> None:
        with open(self.path, "a", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(
                [
                    sample.timestamp,
                    f"{sample.cpu_percent:.2f}",
                    f"{sample.memory_percent:.2f}",
                    f"{sample.temperature:.2f}",
                ]
            )


def status_line(sample: MetricsSample) -> str:
    return (
        f"CPU: {sample.cpu_percent:.1f}% | Memory: {sample.memory_percent:.1f}% "
        f"| Temp: {sample.temperature:.1f}°C"
    )

"""``power-monitor``: log CPU, memory and temperature to a CSV file."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from .config import ConfigError, load_monitor_config
from .monitor import MetricsLog, collect_metrics, status_line

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    help="📈 Sample CPU, memory and temperature and append them to a CSV log.",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.command()
def monitor(
    duration: Optional[int] = typer.Option(None, "--duration", "-d", min=1, help="Seconds to monitor (default: until Ctrl+C)."),
    interval: Optional[int] = typer.Option(None, "--interval", "-i", min=0, help="Seconds to wait between samples (default: 1)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="CSV file to append to (default: power_metrics.csv)."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file with a [monitor] table."),
):
    """📈 Monitor system resources until the duration elapses or Ctrl+C."""
    try:
        cfg = load_monitor_config(config_file)
    except ConfigError as exc:
        console.print(f"[red]✗[/red] {escape(str(exc))}")
        raise typer.Exit(1)

    duration = duration if duration is not None else cfg.duration
    interval = interval if interval is not None else cfg.interval
    output = (output or Path(cfg.output)).expanduser()
    thermal_paths = [Path(p) for p in cfg.thermal_paths]

    log = MetricsLog(output)
    console.print(f"Starting monitoring, saving to [cyan]{escape(str(output))}[/cyan]")
    console.print("[dim]Press Ctrl+C to stop monitoring[/dim]")

    samples = 0
    start = time.monotonic()
    try:
        while duration is None or time.monotonic() - start < duration:
            sample = collect_metrics(Path(cfg.proc_root), thermal_paths)
            log.append(sample)
            samples += 1
            typer.echo("\r" + status_line(sample), nl=False)
            time.sleep(interval)
    except KeyboardInterrupt:
        pass
    except (OSError, ValueError) as exc:
        logger.debug("monitor loop failed", exc_info=True)
        console.print(f"\n[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1)
    finally:
        console.print("\n[yellow]Monitoring stopped[/yellow]")
        console.print(f"Saved {samples} sample(s) to {escape(str(output))}")


if __name__ == "__main__":
    app()

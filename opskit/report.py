"""Plain-text views of a :class:`~opskit.models.ComponentReport`."""

from __future__ import annotations

from typing import List

from .models import ComponentReport

NO_COMPONENTS = "No components impacted."


def format_compact(report: ComponentReport) -> str:
    """One component per line; empty when nothing is impacted."""
    return "\n".join(report.components)


def format_verbose(report: ComponentReport) -> str:
    lines: List[str] = [f"Comparing {report.earliest}..{report.latest}", ""]

    lines.append(f"Changed modules ({len(report.changed_modules)}):")
    if report.changed_modules:
        lines.extend(f"  {module}" for module in report.changed_modules)
    else:
        lines.append("  none")
    lines.append("")

    if not report.components:
        lines.append(NO_COMPONENTS)
        return "\n".join(lines)

    lines.append(f"Components ({len(report.components)}):")
    for component in report.components:
        lines.append(f"  {component}")
        for cause in report.causes(component):
            lines.append(f"    <- {cause}")
    return "\n".join(lines)


def format_report(report: ComponentReport, verbose: bool = False) -> str:
    return format_verbose(report) if verbose else format_compact(report)

"""Core data models shared by the finder pipeline and the monitor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Set


@dataclass
class ModuleHeader:
    module_id: str
    requires: List[str] = field(default_factory=list)


@dataclass
class SourceFile:
    path: str
    module_id: str
    requires: List[str] = field(default_factory=list)


@dataclass
class ComponentReport:
    latest: str
    earliest: str
    changed_files: List[str]
    changed_modules: List[str]
    impact: Dict[str, Set[str]]
    components: List[str]

    def causes(self, component: str) -> List[str]:
        """Changed modules whose dependents include *component*."""
        return [module for module, dependents in self.impact.items() if component in dependents]


@dataclass
class MetricsSample:
    timestamp: str
    cpu_percent: float
    memory_percent: float
    temperature: float

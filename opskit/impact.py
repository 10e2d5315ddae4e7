"""Impact resolution and component classification.

Given a dependency graph and the modules that changed, find every module
that transitively depends on a change, then keep the ones that are
runnable programs (the deployable components).
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Dict, Iterable, List, Mapping, Set

from .graph import DependencyGraph
from .parser import HeaderParser
from .sources import SourceTree

logger = logging.getLogger(__name__)


def transitive_dependents(graph: DependencyGraph, module: str) -> Set[str]:
    """Every module with a dependency path leading to *module*."""
    seen: Set[str] = set()
    queue = deque([module])
    while queue:
        current = queue.popleft()
        for dependent in graph.dependents(current):
            if dependent not in seen:
                seen.add(dependent)
                queue.append(dependent)
    return seen


def resolve_impact(
    graph: DependencyGraph,
    changed_modules: Iterable[str],
    is_eligible: Callable[[str], bool] = lambda module: True,
) -> Dict[str, Set[str]]:
    """Map each changed module in *graph* to its eligible transitive dependents.

    Ineligible modules are still walked through, so a chain ``a -> b -> c``
    with *b* ineligible reports *a* as impacted by *c*.
    """
    impact: Dict[str, Set[str]] = {}
    for module in changed_modules:
        if module not in graph or module in impact:
            continue
        impact[module] = {d for d in transitive_dependents(graph, module) if is_eligible(d)}
    return impact


def classify_components(
    impact: Mapping[str, Set[str]],
    module_files: Mapping[str, str],
    tree: SourceTree,
    parser: HeaderParser,
) -> List[str]:
    """Impacted modules whose file defines an entry point, sorted."""
    candidates: Set[str] = set()
    for dependents in impact.values():
        candidates |= dependents

    components = []
    for module in candidates:
        path = module_files.get(module)
        if path is None:
            continue
        try:
            source = tree.read_text(path)
        except OSError as exc:
            logger.debug("Cannot read %s for %s: %s", path, module, exc)
            continue
        if parser.has_entry_point(source):
            components.append(module)
    return sorted(components)

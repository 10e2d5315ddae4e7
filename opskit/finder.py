"""Orchestrates the component-finder pipeline.

diff -> build graph -> resolve impact -> classify.  Each collaborator can be
swapped out, which is how the tests run the whole pipeline without git or a
real checkout.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .config import FinderConfig
from .graph import DependencyGraph, build_graph
from .impact import classify_components, resolve_impact
from .models import ComponentReport
from .parser import HeaderParser, get_parser
from .sources import LocalSourceTree, SourceTree
from .vcs import GitDiff, RevisionDiff, diff

logger = logging.getLogger(__name__)


class ComponentFinder:
    """Finds the deployable components affected by a range of commits."""

    def __init__(
        self,
        config: FinderConfig,
        diff_reader: Optional[RevisionDiff] = None,
        tree: Optional[SourceTree] = None,
        parser: Optional[HeaderParser] = None,
    ) -> None:
        self.config = config
        self.diff_reader = diff_reader or GitDiff(config.repo_root)
        self.tree = tree or LocalSourceTree(Path(config.repo_root))
        self.parser = parser or get_parser(config.language)

    def changed_files(self) -> List[str]:
        cfg = self.config
        return diff(self.diff_reader, cfg.earliest, cfg.latest, cfg.exclude_paths, cfg.extension)

    def graph(self) -> DependencyGraph:
        return build_graph(self.config.source_paths, self.tree, self.parser, self.config.extension)

    def find(self) -> ComponentReport:
        cfg = self.config
        files = self.changed_files()
        if not files:
            logger.debug("No changed source files between %s and %s", cfg.earliest, cfg.latest)
            return ComponentReport(
                latest=cfg.latest, earliest=cfg.earliest,
                changed_files=[], changed_modules=[], impact={}, components=[],
            )

        graph = self.graph()
        changed_modules = []
        for path in files:
            module = graph.module_for(path)
            if module is None:
                logger.debug("%s is not part of any scanned source root", path)
            elif module not in changed_modules:
                changed_modules.append(module)

        def is_eligible(module: str) -> bool:
            path = graph.file_for(module)
            return path is not None and not cfg.is_excluded(path)

        impact = resolve_impact(graph, changed_modules, is_eligible)
        components = classify_components(impact, graph.module_files(), self.tree, self.parser)
        return ComponentReport(
            latest=cfg.latest,
            earliest=cfg.earliest,
            changed_files=files,
            changed_modules=changed_modules,
            impact=impact,
            components=components,
        )

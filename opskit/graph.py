"""In-memory module dependency graph built from a scan of the source roots."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .models import SourceFile
from .parser import HeaderParseError, HeaderParser
from .sources import SourceTree

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Directed graph of modules; an edge ``a -> b`` means *a* requires *b*."""

    def __init__(self) -> None:
        self._files: Dict[str, str] = {}
        self._modules_by_path: Dict[str, str] = {}
        self._depends_on: Dict[str, Set[str]] = {}
        self._dependents: Dict[str, Set[str]] = {}

    def __contains__(self, module: object) -> bool:
        return module in self._files

    def __len__(self) -> int:
        return len(self._files)

    def add_module(self, module: str, path: str) -> None:
        self._files[module] = path
        self._modules_by_path[path] = module
        self._depends_on.setdefault(module, set())
        self._dependents.setdefault(module, set())

    def add_edge(self, src: str, dst: str) -> None:
        if src == dst:
            return
        if src not in self._files or dst not in self._files:
            raise KeyError(f"both ends of {src} -> {dst} must be added first")
        self._depends_on[src].add(dst)
        self._dependents[dst].add(src)

    def modules(self) -> List[str]:
        return sorted(self._files)

    def edges(self) -> Iterator[Tuple[str, str]]:
        for src in sorted(self._depends_on):
            for dst in sorted(self._depends_on[src]):
                yield src, dst

    def dependencies(self, module: str) -> Set[str]:
        return set(self._depends_on.get(module, ()))

    def dependents(self, module: str) -> Set[str]:
        return set(self._dependents.get(module, ()))

    def file_for(self, module: str) -> Optional[str]:
        return self._files.get(module)

    def module_for(self, path: str) -> Optional[str]:
        return self._modules_by_path.get(path)

    def module_files(self) -> Dict[str, str]:
        return dict(self._files)


def scan_sources(
    source_roots: Iterable[str],
    tree: SourceTree,
    parser: HeaderParser,
    extension: Optional[str] = None,
) -> List[SourceFile]:
    """Parse the header of every source file under *source_roots*.

    Files whose header cannot be parsed or read are logged and skipped.
    """
    extension = extension or parser.extension
    found: List[SourceFile] = []
    seen_paths: Set[str] = set()
    for root in source_roots:
        for path in tree.list_sources(root, extension):
            if path in seen_paths:
                continue
            seen_paths.add(path)
            try:
                header = parser.parse(tree.read_text(path), path=path, root=root)
            except (HeaderParseError, OSError) as exc:
                logger.warning("Skipping %s: %s", path, exc)
                continue
            found.append(SourceFile(path=path, module_id=header.module_id, requires=header.requires))
    return found


def build_graph(
    source_roots: Iterable[str],
    tree: SourceTree,
    parser: HeaderParser,
    extension: Optional[str] = None,
) -> DependencyGraph:
    """Scan *source_roots* and link every module to the modules it requires.

    Requirements that no scanned file declares are external libraries and
    are left out of the graph.
    """
    return graph_from_sources(scan_sources(source_roots, tree, parser, extension))


def graph_from_sources(sources: Iterable[SourceFile]) -> DependencyGraph:
    graph = DependencyGraph()
    declared: List[SourceFile] = []
    for source in sources:
        existing = graph.file_for(source.module_id)
        if existing is not None:
            logger.warning(
                "%s declares %s, already declared by %s; keeping the first",
                source.path, source.module_id, existing,
            )
            continue
        graph.add_module(source.module_id, source.path)
        declared.append(source)

    for source in declared:
        for required in source.requires:
            if required in graph:
                graph.add_edge(source.module_id, required)
            else:
                logger.debug("%s: ignoring external dependency %s", source.module_id, required)
    return graph

"""Filesystem access for the graph builder and the classifier.

Paths are POSIX-style strings relative to the repository root, which is
also how ``git diff --name-only`` reports them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Set

SKIP_DIRS: Set[str] = {
    ".git", ".cpcache", ".clj-kondo", ".lsp", ".shadow-cljs", "target",
    "node_modules", ".venv", "venv", "__pycache__", ".pytest_cache",
}


class SourceTree(ABC):
    """Lists and reads source files."""

    @abstractmethod
    def list_sources(self, root: str, extension: str) -> List[str]:
        """Every file under *root* ending in *extension*, sorted."""
        ...

    @abstractmethod
    def read_text(self, path: str) -> str:
        """Contents of *path*; raises ``OSError`` if it cannot be read."""
        ...


class LocalSourceTree(SourceTree):
    def __init__(self, repo_root: Path = Path(".")) -> None:
        self.repo_root = repo_root

    def list_sources(self, root: str, extension: str) -> List[str]:
        base = self.repo_root / root
        if not base.is_dir():
            return []
        found = []
        for file_path in base.rglob(f"*{extension}"):
            if not file_path.is_file():
                continue
            rel = file_path.relative_to(self.repo_root)
            if any(part in SKIP_DIRS for part in rel.parts):
                continue
            found.append(rel.as_posix())
        return sorted(found)

    def read_text(self, path: str) -> str:
        return (self.repo_root / path).read_text(encoding="utf-8", errors="ignore")


class MemorySourceTree(SourceTree):
    """Source tree backed by a ``{path: contents}`` mapping."""

    def __init__(self, files: Dict[str, str]) -> None:
        self.files = dict(files)

    def list_sources(self, root: str, extension: str) -> List[str]:
        prefix = root.rstrip("/") + "/" if root not in ("", ".") else ""
        return sorted(
            path for path in self.files
            if path.startswith(prefix) and path.endswith(extension)
        )

    def read_text(self, path: str) -> str:
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

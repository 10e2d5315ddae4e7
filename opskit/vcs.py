"""Revision diff reader: which files changed between two revisions."""

from __future__ import annotations

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from typing import Iterable, List, Sequence

logger = logging.getLogger(__name__)


class RevisionDiff(ABC):
    """Lists the paths that differ between two revision references."""

    @abstractmethod
    def changed_paths(self, earliest: str, latest: str) -> List[str]:
        ...


class GitDiff(RevisionDiff):
    """``git diff --name-only`` against a working copy.

    ``--relative`` keeps paths relative to *repo_root*, matching how the
    source tree names files when run from a subdirectory.  A missing git
    executable is not an error: it reads as "nothing changed".
    """

    def __init__(self, repo_root: str = ".", executable: str = "git") -> None:
        self.repo_root = repo_root
        self.executable = executable

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def changed_paths(self, earliest: str, latest: str) -> List[str]:
        if not self.available():
            logger.info("%s not found on PATH; treating as no changes", self.executable)
            return []
        try:
            result = subprocess.run(
                [self.executable, "diff", "--relative", earliest, latest, "--name-only"],
                cwd=self.repo_root,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            logger.info("%s disappeared before it could run; treating as no changes", self.executable)
            return []
        if result.returncode != 0:
            logger.warning(
                "git diff %s %s failed (exit %d): %s",
                earliest, latest, result.returncode, result.stderr.strip(),
            )
            return []
        return result.stdout.splitlines()


class StaticDiff(RevisionDiff):
    """Fixed list of changed paths, for dry runs and tests."""

    def __init__(self, paths: Iterable[str]) -> None:
        self.paths = list(paths)

    def changed_paths(self, earliest: str, latest: str) -> List[str]:
        return list(self.paths)


def filter_changed_paths(
    paths: Iterable[str],
    exclude_paths: Sequence[str],
    extension: str = ".clj",
) -> List[str]:
    """Keep source files outside every excluded prefix, in input order."""
    kept = []
    for raw in paths:
        path = raw.strip()
        if not path or not path.endswith(extension):
            continue
        if any(path.startswith(prefix) for prefix in exclude_paths):
            continue
        kept.append(path)
    return kept


def diff(
    reader: RevisionDiff,
    earliest: str,
    latest: str,
    exclude_paths: Sequence[str],
    extension: str = ".clj",
) -> List[str]:
    return filter_changed_paths(reader.changed_paths(earliest, latest), exclude_paths, extension)

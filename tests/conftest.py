"""Pytest configuration and fixtures for the opskit tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator

import pytest

from opskit.config import FinderConfig
from opskit.sources import MemorySourceTree


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    """Keep a developer's own .components.toml or $OPSKIT_CONFIG out of the tests."""
    monkeypatch.delenv("OPSKIT_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Clojure project: shop.core, shop.worker, shop.cli.tool and shop.dev.seed define -main."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def python_project_path() -> Path:
    return Path(__file__).parent / "fixtures" / "python_project"


@pytest.fixture
def chain_files() -> Dict[str, str]:
    """a -> b -> c, where only a is runnable."""
    return {
        "src/a.clj": "(ns a (:require [b]))\n(defn -main [& args] (b/run))\n",
        "src/b.clj": "(ns b (:require [c]))\n(defn run [] (c/go))\n",
        "src/c.clj": "(ns c)\n(defn go [] :ok)\n",
    }


@pytest.fixture
def chain_tree(chain_files: Dict[str, str]) -> MemorySourceTree:
    return MemorySourceTree(chain_files)


@pytest.fixture
def finder_config() -> FinderConfig:
    return FinderConfig(source_paths=["src"], exclude_paths=["test/", "qa/"])

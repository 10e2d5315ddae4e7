"""Integration tests for the component-finder command."""

import time
from pathlib import Path

import pytest
from typer.testing import CliRunner

from opskit import cli
from opskit.cli import app, validate_args
from opskit.deadline import run_with_deadline
from opskit.finder import ComponentFinder
from opskit.sources import LocalSourceTree
from opskit.vcs import GitDiff, StaticDiff

runner = CliRunner()


@pytest.fixture
def use_sample_project(monkeypatch, sample_project_path: Path):
    """Point the command at the sample project with a fixed set of changes."""
    created = []

    def install(changes):
        def factory(cfg):
            finder = ComponentFinder(
                cfg,
                diff_reader=StaticDiff(changes),
                tree=LocalSourceTree(sample_project_path),
            )
            created.append(finder)
            return finder

        monkeypatch.setattr(cli, "ComponentFinder", factory)
        return created

    return install


class TestValidateArgs:

    def test_ok(self):
        assert validate_args([], 300) is None
        assert validate_args(["HEAD", "master"], 10) is None

    def test_too_many_revisions(self):
        assert "At most two revisions" in validate_args(["a", "b", "c"], 300)

    @pytest.mark.parametrize("timeout", [0, 9, 601])
    def test_timeout_out_of_range(self, timeout):
        assert "Timeout must be between" in validate_args([], timeout)


class TestComponentsCommand:

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "--exclude" in result.stdout
        assert "--timeout" in result.stdout

    def test_lists_components(self, use_sample_project):
        use_sample_project(["src/shop/util.clj"])
        result = runner.invoke(app, ["-e", "src/shop/dev/"])

        assert result.exit_code == 0, result.output
        assert result.stdout.split() == ["shop.cli.tool", "shop.core", "shop.worker"]

    def test_default_revisions_and_excludes(self, use_sample_project):
        created = use_sample_project([])
        result = runner.invoke(app, [])

        assert result.exit_code == 0
        cfg = created[0].config
        assert (cfg.latest, cfg.earliest) == ("HEAD", "master")
        assert cfg.exclude_paths == ["test/", "qa/"]
        assert cfg.source_paths == ["src"]

    def test_positional_revisions(self, use_sample_project):
        created = use_sample_project([])
        result = runner.invoke(app, ["release-branch", "main", "-s", "lib", "-s", "src", "-t", "60"])

        assert result.exit_code == 0
        cfg = created[0].config
        assert (cfg.latest, cfg.earliest) == ("release-branch", "main")
        assert cfg.source_paths == ["lib", "src"]
        assert cfg.timeout == 60

    def test_no_changes_prints_nothing(self, use_sample_project):
        use_sample_project([])
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert result.stdout == ""

    def test_verbose_report(self, use_sample_project):
        use_sample_project(["src/shop/orders.clj"])
        result = runner.invoke(app, ["--verbose"])

        assert result.exit_code == 0, result.output
        assert "Changed modules (1):" in result.stdout
        assert "  shop.core\n    <- shop.orders" in result.stdout

    def test_verbose_no_components(self, use_sample_project):
        use_sample_project([])
        result = runner.invoke(app, ["-v"])
        assert result.exit_code == 0
        assert "No components impacted." in result.stdout

    def test_too_many_revisions_exits_1(self):
        result = runner.invoke(app, ["a", "b", "c"])
        assert result.exit_code == 1
        assert "At most two revisions" in result.output
        assert "Usage: component-finder" in result.output

    def test_timeout_out_of_range_exits_1(self):
        result = runner.invoke(app, ["-t", "5"])
        assert result.exit_code == 1
        assert "Timeout must be between" in result.output

    def test_bad_config_file_exits_1(self, temp_dir: Path):
        path = temp_dir / "bad.toml"
        path.write_text("[components\n")
        result = runner.invoke(app, ["--config", str(path)])
        assert result.exit_code == 1
        assert "Could not read config file" in result.output

    def test_mistyped_config_value_exits_1(self, temp_dir: Path):
        path = temp_dir / "typed.toml"
        path.write_text('[components]\ntimeout = "60"\n')
        result = runner.invoke(app, ["--config", str(path)])
        assert result.exit_code == 1
        assert "timeout must be an integer" in result.output
        assert "Usage: component-finder" in result.output

    def test_config_file_defaults(self, temp_dir: Path, use_sample_project):
        created = use_sample_project([])
        path = temp_dir / "cfg.toml"
        path.write_text('[components]\nearliest = "main"\nexclude_paths = ["spec/"]\n')
        result = runner.invoke(app, ["--config", str(path), "-e", "dev/"])

        assert result.exit_code == 0, result.output
        cfg = created[0].config
        assert cfg.earliest == "main"
        assert cfg.exclude_paths == ["spec/", "dev/"]

    def test_missing_git_exits_0(self, monkeypatch, chain_tree):
        def factory(cfg):
            return ComponentFinder(cfg, diff_reader=GitDiff(executable="definitely-not-git-xyz"), tree=chain_tree)

        monkeypatch.setattr(cli, "ComponentFinder", factory)
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert result.stdout == ""

    def test_timeout_aborts_slow_pipeline(self, monkeypatch, chain_tree):
        class SlowFinder(ComponentFinder):
            def graph(self):
                time.sleep(2)
                return super().graph()

        def factory(cfg):
            return SlowFinder(cfg, diff_reader=StaticDiff(["src/c.clj"]), tree=chain_tree)

        monkeypatch.setattr(cli, "ComponentFinder", factory)
        monkeypatch.setattr(
            cli, "run_with_deadline", lambda fn, timeout: run_with_deadline(fn, 0.05)
        )
        result = runner.invoke(app, ["-t", "10"])

        assert result.exit_code == 1
        assert "[components] Timeout! 10 sec" in result.stdout
        assert "a\n" not in result.stdout

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "component-finder v" in result.stdout

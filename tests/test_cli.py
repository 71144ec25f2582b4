"""Tests for the CLI interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from mdrules import __version__
from mdrules.cli import main

STYLE = 'file="docs/style.md"'
GLOBAL = 'file=".cursor/rules/global.md"'


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner: CliRunner, *args: str):
    return runner.invoke(main, ["--log-level", "silent", *args], env={"PROJECT_ROOT": ""})


@pytest.fixture
def initialized_project(docs_project: Path) -> Path:
    """A docs_project that has been through `mdrules init`."""
    result = invoke(CliRunner(), "init", "--path", str(docs_project))
    assert result.exit_code == 0, f"Init failed: {result.output}"
    return docs_project


class TestCLIInit:
    def test_init_basic(self, runner: CliRunner, docs_project: Path):
        result = invoke(runner, "init", "--path", str(docs_project))
        assert result.exit_code == 0
        assert "Initializing" in result.output
        assert "Indexed" in result.output

    def test_init_creates_config(self, runner: CliRunner, docs_project: Path):
        invoke(runner, "init", "--path", str(docs_project))
        config_path = docs_project / ".mdrules" / "config.json"
        assert config_path.exists()
        assert json.loads(config_path.read_text())["name"] == docs_project.name

    def test_init_nonexistent_path(self, runner: CliRunner):
        result = invoke(runner, "init", "--path", "/nonexistent/path")
        assert result.exit_code != 0

    def test_version(self, runner: CliRunner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestCLIIndex:
    def test_index_shows_stats(self, runner: CliRunner, initialized_project: Path):
        result = invoke(runner, "index", "--path", str(initialized_project))
        assert result.exit_code == 0
        assert "Document Index Statistics" in result.output
        assert "could not be loaded" in result.output

    def test_no_project_found(self, runner: CliRunner, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = invoke(runner, "index")
        assert result.exit_code == 1
        assert "No mdrules project found" in result.output


class TestCLIContext:
    def test_context_renders_docs(self, runner: CliRunner, docs_project: Path):
        result = invoke(runner, "context", "--path", str(docs_project), "-a", "src/main.ts")
        assert result.exit_code == 0
        assert '<doc type="auto" file="docs/typescript.md">' in result.output
        assert '<inline_doc description="Snippet" file="docs/snippet.md" lines="2-3">' in result.output

    def test_context_hoist_flag(self, runner: CliRunner, docs_project: Path):
        hoisted = invoke(runner, "context", "--path", str(docs_project)).output
        trailing = invoke(runner, "context", "--path", str(docs_project), "--no-hoist").output

        assert hoisted.index(STYLE) < hoisted.index(GLOBAL)
        assert trailing.index(GLOBAL) < trailing.index(STYLE)

    def test_context_hoist_from_config(self, runner: CliRunner, initialized_project: Path):
        invoke(runner, "config", "set", "context.hoist", "false", "--path", str(initialized_project))
        output = invoke(runner, "context", "--path", str(initialized_project)).output
        assert output.index(GLOBAL) < output.index(STYLE)

    def test_context_agent_selection(self, runner: CliRunner, docs_project: Path):
        result = invoke(
            runner, "context", "--path", str(docs_project), "-g", "Database conventions"
        )
        assert result.exit_code == 0
        assert 'type="agent" file="docs/database.md"' in result.output
        assert '<doc description="Schema" type="related" file="docs/schema.md">' in result.output

    def test_context_summary(self, runner: CliRunner, docs_project: Path):
        result = invoke(
            runner, "context", "--path", str(docs_project), "-a", "src/main.ts", "--summary"
        )
        assert result.exit_code == 0
        assert "docs/typescript.md" in result.output
        assert "(auto)" in result.output
        assert "<doc" not in result.output

    def test_context_nothing_applies(self, runner: CliRunner, tmp_path: Path):
        (tmp_path / "plain.md").write_text("Nothing special")
        result = invoke(runner, "context", "--path", str(tmp_path))
        assert result.exit_code == 0
        assert "No docs apply" in result.output


class TestCLIDocs:
    def test_docs_lists_attachable(self, runner: CliRunner, docs_project: Path):
        result = invoke(runner, "docs", "--path", str(docs_project))
        assert result.exit_code == 0
        assert "Database conventions" in result.output
        assert "Testing conventions" in result.output
        assert "Global rules" not in result.output


class TestCLIServe:
    @pytest.mark.parametrize("client,key", [("claude", "markdown-rules"), ("cursor", "mcpServers")])
    def test_generate_config(self, runner: CliRunner, tmp_path: Path, client: str, key: str):
        result = invoke(
            runner, "serve", "--path", str(tmp_path), "--generate-config", client
        )
        assert result.exit_code == 0
        assert key in json.loads(result.output)


class TestCLIConfig:
    def test_config_show(self, runner: CliRunner, initialized_project: Path):
        result = invoke(runner, "config", "show", "--path", str(initialized_project))
        assert result.exit_code == 0
        assert "include_patterns" in result.output

    def test_config_get(self, runner: CliRunner, initialized_project: Path):
        result = invoke(runner, "config", "get", "context.hoist", "--path", str(initialized_project))
        assert result.exit_code == 0
        assert "context.hoist = True" in result.output

    def test_config_get_unknown_key(self, runner: CliRunner, initialized_project: Path):
        result = invoke(runner, "config", "get", "context.nope", "--path", str(initialized_project))
        assert result.exit_code == 1
        assert "Unknown config key" in result.output

    def test_config_set(self, runner: CliRunner, initialized_project: Path):
        result = invoke(
            runner, "config", "set", "log_level", "debug", "--path", str(initialized_project)
        )
        assert result.exit_code == 0
        config = json.loads((initialized_project / ".mdrules" / "config.json").read_text())
        assert config["log_level"] == "debug"

    def test_config_set_unknown_key(self, runner: CliRunner, initialized_project: Path):
        result = invoke(
            runner, "config", "set", "nope.key", "1", "--path", str(initialized_project)
        )
        assert result.exit_code == 1
        assert "Unknown config key" in result.output

    def test_config_set_invalid_value(self, runner: CliRunner, initialized_project: Path):
        result = invoke(
            runner, "config", "set", "log_level", "loud", "--path", str(initialized_project)
        )
        assert result.exit_code == 1

"""Tests for the command line interface."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from sitterforge.cli import cli, main
from sitterforge.orchestrator import BuildOrchestrator
from sitterforge.utils.config import shared_library_extension


@pytest.fixture
def runner(monkeypatch):
    for name in ("INSIDE_EMACS", "SITTERFORGE_LOG_JSON", "SITTERFORGE_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CC", "cc")
    monkeypatch.setenv("CXX", "c++")
    return CliRunner()


@pytest.fixture
def invoke(runner, workspace, executor):
    """Run the CLI against the workspace with the recording executor."""
    def factory(config):
        return BuildOrchestrator(config, executor=executor)

    def _invoke(*args):
        with patch("sitterforge.cli.BuildOrchestrator", side_effect=factory):
            return runner.invoke(cli, [
                "--root", str(workspace["root"]),
                "--prefix", str(workspace["prefix"]),
                *args,
            ])
    return _invoke


def lib(name):
    return f"libtree-sitter-{name}.{shared_library_extension()}"


def test_positional_languages_build_only_those(invoke, executor, workspace, source_tree):
    root = workspace["root"]
    source_tree(root / "tree-sitter-c")
    source_tree(root / "tree-sitter-json")
    (root / "tree-sitter").mkdir()

    result = invoke("c")

    assert result.exit_code == 0, result.output
    assert (workspace["prefix"] / "lib" / lib("c")).is_file()
    assert not (workspace["prefix"] / "lib" / lib("json")).exists()
    assert executor.commands("make") == []


def test_no_arguments_builds_core_then_everything(invoke, executor, workspace, source_tree):
    root = workspace["root"]
    source_tree(root / "tree-sitter-c")
    source_tree(root / "tree-sitter-typescript" / "typescript")
    source_tree(root / "tree-sitter-typescript" / "tsx")
    (root / "tree-sitter").mkdir()

    result = invoke()

    assert result.exit_code == 0, result.output
    assert executor.calls[0].args == ["make", "clean"]
    installed = sorted(p.name for p in (workspace["prefix"] / "lib").iterdir())
    assert installed == sorted([lib("c"), lib("typescript"), lib("tsx")])


def test_core_flag_builds_only_core(invoke, executor, workspace, source_tree):
    source_tree(workspace["root"] / "tree-sitter-c")
    (workspace["root"] / "tree-sitter").mkdir()

    result = invoke("--core")

    assert result.exit_code == 0, result.output
    assert [c[0] for c in executor.commands()] == ["make", "make", "make"]


def test_core_token_builds_core_in_sequence(invoke, executor, workspace, source_tree):
    root = workspace["root"]
    source_tree(root / "tree-sitter-c")
    source_tree(root / "tree-sitter-json")
    (root / "tree-sitter").mkdir()

    result = invoke("c", "core", "json")

    assert result.exit_code == 0, result.output
    programs = [args[0] for args in executor.commands()]
    assert programs == ["cc", "cc", "make", "make", "make", "cc", "cc"]
    assert executor.calls[2].cwd == root / "tree-sitter"
    assert (workspace["prefix"] / "lib" / lib("json")).is_file()


def test_core_directory_name_also_builds_core(invoke, executor, workspace):
    (workspace["root"] / "tree-sitter").mkdir()

    result = invoke("tree-sitter")

    assert result.exit_code == 0, result.output
    assert [c[0] for c in executor.commands()] == ["make", "make", "make"]


def test_missing_parser_exits_nonzero_with_report(invoke, executor, workspace):
    (workspace["root"] / "tree-sitter-c" / "src").mkdir(parents=True)

    result = invoke("c")

    assert result.exit_code == 1
    assert "DIE" in result.output
    assert "parser.c is not found." in result.output
    assert executor.calls == []


def test_compiler_failure_propagates_exit_code(invoke, executor, workspace, source_tree):
    source_tree(workspace["root"] / "tree-sitter-c")
    executor.fail(["cc", "-fPIC", "-c"], returncode=5)

    result = invoke("c")

    assert result.exit_code == 5


def test_bad_add_url_exits_one_without_git(invoke, executor):
    result = invoke("--add", "ftp://example.com/tree-sitter-c.git")

    assert result.exit_code == 1
    assert "Bad address" in result.output
    assert executor.calls == []


def test_add_with_languages_is_a_usage_error(invoke, executor):
    result = invoke("--add", "https://github.com/tree-sitter/tree-sitter-c.git", "python")
    assert result.exit_code != 0
    assert executor.calls == []


def test_update_then_builds_requested_language(invoke, executor, workspace, source_tree):
    source_tree(workspace["root"] / "tree-sitter-c")
    (workspace["root"] / "tree-sitter-c" / ".git").write_text("gitdir: ../../.git/modules/c\n")
    (workspace["repo_root"] / ".gitmodules").write_text("")
    executor.respond(["git", "config"], "submodule.c.path tree-sitter/tree-sitter-c")
    executor.respond(["git", "rev-list"], "abc")
    executor.respond(["git", "describe"], "v0.21.0")

    result = invoke("--update", "c")

    assert result.exit_code == 0, result.output
    git_calls = [args[1] for args in executor.commands("git")]
    assert git_calls == ["config", "reset", "fetch", "rev-list", "describe", "checkout"]
    assert (workspace["prefix"] / "lib" / lib("c")).is_file()


def test_list_builds_nothing(invoke, executor, workspace, source_tree):
    source_tree(workspace["root"] / "tree-sitter-go-mod")
    (workspace["root"] / "tree-sitter").mkdir()

    result = invoke("--list")

    assert result.exit_code == 0, result.output
    assert "go-mod" in result.output
    assert executor.calls == []


def test_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "--add" in result.output


def test_main_maps_usage_errors_to_one():
    with pytest.raises(SystemExit) as exc_info:
        main(["--no-such-flag"])
    assert exc_info.value.code == 1

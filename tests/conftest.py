"""Common test fixtures for sitterforge tests."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from sitterforge.orchestrator import BuildOrchestrator
from sitterforge.utils.command_execution import CommandExecutor, CommandResult
from sitterforge.utils.config import BuildConfig
from sitterforge.utils.error_handling import CommandError

Response = Union[str, Callable[[List[str], Path], str]]


@dataclass
class Call:
    args: List[str]
    cwd: Path
    env: Optional[Dict[str, str]]


class RecordingExecutor(CommandExecutor):
    """Records commands instead of running them.

    Compiler calls are simulated: ``-c <src>`` writes ``<stem>.o`` and
    ``-shared ... -o <lib>`` writes the library, both in ``cwd``.
    """

    def __init__(self):
        super().__init__(base_env={})
        self.calls: List[Call] = []
        self.responses: List[Tuple[Tuple[str, ...], Response]] = []
        self.failures: List[Tuple[Tuple[str, ...], int]] = []

    def respond(self, prefix: Sequence[str], response: Response) -> None:
        self.responses.append((tuple(prefix), response))

    def fail(self, prefix: Sequence[str], returncode: int = 1) -> None:
        self.failures.append((tuple(prefix), returncode))

    def commands(self, program: Optional[str] = None) -> List[List[str]]:
        return [c.args for c in self.calls if program is None or c.args[0] == program]

    def run(self, args, cwd, env=None):
        argv = [str(arg) for arg in args]
        cwd = Path(cwd)
        self.calls.append(Call(argv, cwd, env))

        for prefix, returncode in self.failures:
            if tuple(argv[:len(prefix)]) == prefix:
                raise CommandError(
                    f"Command failed with exit code {returncode}",
                    args=argv,
                    returncode=returncode,
                    stderr="simulated failure",
                )

        if "-shared" in argv:
            (cwd / argv[argv.index("-o") + 1]).write_bytes(b"\x7fELF")
        elif "-c" in argv and argv[0] != "git":
            (cwd / (Path(argv[-1]).stem + ".o")).write_bytes(b"obj")

        stdout = ""
        for prefix, response in self.responses:
            if tuple(argv[:len(prefix)]) == prefix:
                stdout = response(argv, cwd) if callable(response) else response
                break
        return CommandResult(args=argv, cwd=cwd, returncode=0, stdout=stdout)


def make_source_tree(directory: Path, scanner: Optional[str] = None, grammar: bool = True) -> Path:
    """Create a grammar directory with src/parser.c and an optional scanner."""
    src = directory / "src"
    src.mkdir(parents=True, exist_ok=True)
    (src / "parser.c").write_text("/* parser */\n")
    if grammar:
        (directory / "grammar.js").write_text("module.exports = grammar({});\n")
    for name in ([scanner] if isinstance(scanner, str) else scanner or []):
        (src / name).write_text("/* scanner */\n")
    return directory


@pytest.fixture(autouse=True)
def reset_sitterforge_logger():
    yield
    logger = logging.getLogger("sitterforge")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def workspace(tmp_path: Path) -> Dict[str, Path]:
    """A superproject with a grammar root inside it and a separate install prefix."""
    repo_root = tmp_path / "dotfiles"
    root = repo_root / "tree-sitter"
    root.mkdir(parents=True)
    prefix = tmp_path / "prefix"
    return {"repo_root": repo_root, "root": root, "prefix": prefix}


@pytest.fixture
def config(workspace) -> BuildConfig:
    return BuildConfig(
        root=workspace["root"],
        prefix=workspace["prefix"],
        repo_root=workspace["repo_root"],
        cc="cc",
        cxx="c++",
        shared_ext="so",
    )


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def orchestrator(config, executor) -> BuildOrchestrator:
    return BuildOrchestrator(config, executor=executor)


@pytest.fixture
def source_tree():
    """Factory fixture around make_source_tree."""
    return make_source_tree

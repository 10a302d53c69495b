"""
Shared command execution utilities for sitterforge.
"""

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import structlog

from .error_handling import CommandError, ErrorCode, PreconditionError

logger = structlog.get_logger(__name__)


@dataclass
class CommandResult:
    """Outcome of one finished command."""

    args: List[str]
    cwd: Path
    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandExecutor:
    """Runs external tools one at a time and fails fast on non-zero exit."""

    def __init__(self, base_env: Optional[Dict[str, str]] = None):
        """Initialize the command executor.

        Args:
            base_env: Environment every command starts from (defaults to os.environ)
        """
        self.base_env = dict(os.environ if base_env is None else base_env)

    def _build_env(self, env: Optional[Dict[str, str]]) -> Dict[str, str]:
        merged = dict(self.base_env)
        if env:
            merged.update(env)
        return merged

    def run(
        self,
        args: Sequence[str],
        cwd: Union[str, Path],
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            args: Program and arguments, never passed through a shell
            cwd: Directory to run in
            env: Extra environment variables layered over the base environment

        Returns:
            CommandResult with the captured output

        Raises:
            PreconditionError if cwd is not a directory
            CommandError if the program is missing or exits non-zero
        """
        argv = [str(arg) for arg in args]
        cwd = Path(cwd)
        if not cwd.is_dir():
            raise PreconditionError(
                f"Working directory not found: {cwd}",
                details={"directory": str(cwd), "command": argv[0]}
            )
        logger.info("+ " + shlex.join(argv), cwd=str(cwd))

        try:
            completed = subprocess.run(
                argv,
                cwd=str(cwd),
                env=self._build_env(env),
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise CommandError(
                f"Command not found: {argv[0]}",
                args=argv,
                returncode=127,
                stderr=str(e),
                code=ErrorCode.COMMAND_NOT_FOUND,
            ) from e

        if completed.stdout:
            logger.debug(completed.stdout.rstrip(), stream="stdout", command=argv[0])
        if completed.stderr:
            logger.debug(completed.stderr.rstrip(), stream="stderr", command=argv[0])

        if completed.returncode != 0:
            raise CommandError(
                f"Command failed with exit code {completed.returncode}: {shlex.join(argv)}",
                args=argv,
                returncode=completed.returncode,
                stdout=completed.stdout,
                stderr=completed.stderr,
            )

        return CommandResult(
            args=argv,
            cwd=cwd,
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

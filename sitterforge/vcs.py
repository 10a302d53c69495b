"""Git submodule operations for grammar source trees."""

from pathlib import Path
from typing import List, Optional

import structlog

from .utils.command_execution import CommandExecutor
from .utils.error_handling import CommandError

logger = structlog.get_logger(__name__)


class GitClient:
    """Thin wrapper over the git CLI; every call names its working directory."""

    def __init__(self, executor: CommandExecutor, git: str = "git"):
        self.executor = executor
        self.git = git

    def _git(self, cwd: Path, *args: str) -> str:
        return self.executor.run([self.git, *args], cwd=cwd).stdout.strip()

    def submodule_add(self, repo_root: Path, url: str, path: str, force: bool = False) -> None:
        args = ["submodule", "add"]
        if force:
            args.append("--force")
        self._git(repo_root, *args, url, path)

    def submodule_paths(self, repo_root: Path) -> List[Path]:
        """Paths of the checked-out submodules registered in ``.gitmodules``.

        Uninitialized submodules are left out: their directory is empty (or
        missing), so git run there would act on the superproject instead.
        """
        if not (repo_root / ".gitmodules").is_file():
            return []
        try:
            output = self._git(
                repo_root, "config", "--file", ".gitmodules",
                "--get-regexp", r"^submodule\..*\.path$",
            )
        except CommandError as e:
            # git config exits 1 when nothing matches.
            if e.returncode == 1:
                return []
            raise
        paths = []
        for line in output.splitlines():
            _, _, path = line.partition(" ")
            if not path:
                continue
            submodule = repo_root / path.strip()
            if not (submodule / ".git").exists():
                logger.warning("Skipping uninitialized submodule", path=str(submodule))
                continue
            paths.append(submodule)
        return paths

    def reset_hard(self, path: Path) -> None:
        self._git(path, "reset", "--hard")

    def fetch(self, path: Path) -> None:
        self._git(path, "fetch", "origin", "--tags")

    def latest_tag(self, path: Path) -> Optional[str]:
        """Most recently created tag reachable from any ref, or None."""
        commit = self._git(path, "rev-list", "--tags", "--max-count=1")
        if not commit:
            return None
        return self._git(path, "describe", "--tags", commit)

    def tracking_branch(self, path: Path) -> str:
        ref = self._git(path, "rev-parse", "--abbrev-ref", "origin/HEAD")
        return ref[len("origin/"):] if ref.startswith("origin/") else ref

    def checkout(self, path: Path, ref: str, force: bool = False) -> None:
        args = ["checkout"]
        if force:
            args.append("--force")
        self._git(path, *args, ref)

    def checkout_latest(self, path: Path, force: bool = False) -> str:
        """Check out the latest release tag, else fast-forward the tracking branch.

        Returns the ref that was checked out.
        """
        tag = self.latest_tag(path)
        if tag:
            logger.info("Checking out latest tag", repo=path.name, tag=tag)
            self.checkout(path, tag, force=force)
            return tag

        branch = self.tracking_branch(path)
        logger.info("No tags found, following tracking branch", repo=path.name, branch=branch)
        self.checkout(path, branch, force=force)
        self._git(path, "merge", "--ff-only", f"origin/{branch}")
        return branch

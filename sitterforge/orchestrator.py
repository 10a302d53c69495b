"""Build the tree-sitter core library and per-language grammar plugins."""

import re
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import structlog

from .recipes import RecipeTable
from .utils.command_execution import CommandExecutor
from .utils.config import BuildConfig
from .utils.error_handling import ConfigurationError, PreconditionError, UsageError
from .vcs import GitClient

logger = structlog.get_logger(__name__)

VALID_URL = re.compile(r"^(git@|https://)")
CORE_STATIC_LIBRARY = "libtree-sitter.a"


class BuildOrchestrator:
    """Turns language tokens into compiler invocations and installed libraries."""

    def __init__(
        self,
        config: BuildConfig,
        executor: Optional[CommandExecutor] = None,
        git: Optional[GitClient] = None,
    ):
        self.config = config
        self.executor = executor or CommandExecutor()
        self.git = git or GitClient(self.executor)
        self.recipes = RecipeTable(config.recipes)

    # -- naming ---------------------------------------------------------

    def library_name(self, artifact: str) -> str:
        return f"lib{self.config.repo_prefix}{artifact}.{self.config.shared_ext}"

    def token_for(self, name: str) -> str:
        prefix = self.config.repo_prefix
        return name[len(prefix):] if name.startswith(prefix) else name

    def repo_dir(self, token: str) -> Path:
        return self.config.root / f"{self.config.repo_prefix}{token}"

    def _toolchain_env(self) -> Dict[str, str]:
        return {
            "PREFIX": str(self.config.prefix),
            "CC": self.config.cc,
            "CXX": self.config.cxx,
        }

    # -- core -----------------------------------------------------------

    def build_core(self) -> Path:
        """Build and install the core library, leaving only the shared variant."""
        core_dir = self.config.root / self.config.core_dir
        if not core_dir.is_dir():
            raise PreconditionError(
                f"Core library directory not found: {core_dir}",
                details={"directory": str(core_dir)}
            )

        logger.info("Building tree-sitter", directory=str(core_dir))
        env = self._toolchain_env()
        self.executor.run(["make", "clean"], cwd=core_dir, env=env)
        self.executor.run(["make", f"-j{self.config.make_jobs}"], cwd=core_dir, env=env)
        self.executor.run(["make", "install"], cwd=core_dir, env=env)

        static_lib = self.config.lib_dir / CORE_STATIC_LIBRARY
        if static_lib.exists():
            logger.debug("Removing static library", path=str(static_lib))
            static_lib.unlink()
        return self.config.lib_dir

    # -- languages ------------------------------------------------------

    def _pick_scanner(self, src_dir: Path) -> Tuple[Optional[Path], str]:
        """Return the scanner source to compile and the compiler for it and the link."""
        c_scanner = src_dir / "scanner.c"
        cxx_scanner = src_dir / "scanner.cc"
        if c_scanner.is_file() and cxx_scanner.is_file():
            if self.config.scanner_conflict == "error":
                raise ConfigurationError(
                    f"Both scanner.c and scanner.cc exist in {src_dir}",
                    details={"directory": str(src_dir), "policy": "error"}
                )
            logger.warning("Both scanner.c and scanner.cc exist, using scanner.c", directory=str(src_dir))
        if c_scanner.is_file():
            return c_scanner, self.config.cc
        if cxx_scanner.is_file():
            return cxx_scanner, self.config.cxx
        return None, self.config.cc

    def _install_path(self, lib_name: str) -> Path:
        target = self.config.lib_dir / lib_name
        if self.config.inside_editor and target.exists():
            target = target.with_name(lib_name + self.config.editor_suffix)
        return target

    def compile_source_tree(self, directory: Path, artifact: str) -> Path:
        """Compile one grammar directory into a shared library and install it.

        Returns the installed path.
        """
        src_dir = directory / "src"
        if not directory.is_dir():
            raise PreconditionError(
                f"Source tree not found: {directory}",
                details={"directory": str(directory)}
            )
        if not (src_dir / "parser.c").is_file():
            raise PreconditionError(
                "parser.c is not found.",
                details={"directory": str(src_dir)}
            )
        scanner, compiler = self._pick_scanner(src_dir)

        logger.info("Building language", artifact=artifact, directory=str(directory))
        lib_name = self.library_name(artifact)

        grammar = directory / "grammar.js"
        if grammar.is_file():
            shutil.copy(grammar, src_dir / grammar.name)
        else:
            logger.warning("grammar.js not found, not staging it", directory=str(directory))

        stale = list(src_dir.glob("*.o")) + list(src_dir.glob(f"*.{self.config.shared_ext}*"))
        for path in stale:
            path.unlink()

        c_args = ["-fPIC", "-c", f"-I{self.config.include_dir}", "-I."]
        self.executor.run([self.config.cc, *c_args, "parser.c"], cwd=src_dir)
        if scanner is not None:
            self.executor.run([compiler, *c_args, scanner.name], cwd=src_dir)

        objects = sorted(path.name for path in src_dir.glob("*.o"))
        self.executor.run([compiler, "-fPIC", "-shared", *objects, "-o", lib_name], cwd=src_dir)

        target = self._install_path(lib_name)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_dir / lib_name, target)
        logger.info("Installed", artifact=artifact, path=str(target))
        return target

    def build_language(self, token: str) -> List[Path]:
        """Build every artifact the token's recipe names."""
        recipe = self.recipes.resolve(token)
        repo_dir = self.repo_dir(token)
        targets = recipe.targets(repo_dir, token)

        missing = [str(t.directory) for t in targets if not t.directory.is_dir()]
        if missing:
            raise PreconditionError(
                f"Source tree for '{token}' not found",
                details={"missing": missing}
            )
        return [self.compile_source_tree(t.directory, t.artifact) for t in targets]

    def discover_tokens(self) -> List[str]:
        """Language tokens for every grammar directory under the root."""
        tokens = []
        for entry in sorted(self.config.root.iterdir()):
            if entry.name.startswith("."):
                continue
            if not entry.is_dir():
                logger.debug("Skipping file", name=entry.name)
                continue
            if entry.name == self.config.core_dir:
                logger.debug("Skipping directory", name=entry.name)
                continue
            tokens.append(self.token_for(entry.name))
        return tokens

    def build_all(self) -> List[Path]:
        logger.info("Building all languages", root=str(self.config.root))
        installed: List[Path] = []
        for token in self.discover_tokens():
            installed.extend(self.build_language(token))
        return installed

    # -- source management ----------------------------------------------

    def derive_names(self, url: str) -> Tuple[str, str]:
        """Return (directory name, language token) for a grammar repository URL."""
        base = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
        if base.endswith(".git"):
            base = base[:-len(".git")]
        if not base:
            raise UsageError(f"Cannot derive a directory name from: {url}")
        return base, self.token_for(base)

    def add_language(self, url: str, force: bool = False) -> List[Path]:
        """Register a grammar repository as a submodule, pin it to its latest release, build it."""
        if not VALID_URL.match(url):
            raise UsageError(f"Bad address: {url}", details={"url": url})

        name, token = self.derive_names(url)
        destination = self.config.root / name
        if destination.exists() and not force:
            raise UsageError(
                f"{destination} already exists, pass --force to add it anyway",
                details={"directory": str(destination)}
            )

        repo_root = self.config.repo_root
        try:
            submodule_path = destination.relative_to(repo_root).as_posix()
        except ValueError as e:
            raise UsageError(
                f"Grammar root {self.config.root} is not inside {repo_root}"
            ) from e

        logger.info("Adding language", url=url, path=submodule_path, token=token)
        self.git.submodule_add(repo_root, url, submodule_path, force=force)
        self.git.checkout_latest(destination, force=force)
        return self.build_language(token)

    def update_all(self, force: bool = False) -> Dict[str, str]:
        """Move every checked-out submodule to its latest release.

        Returns the ref chosen for each submodule, keyed by its path relative
        to the superproject.
        """
        repo_root = self.config.repo_root
        refs: Dict[str, str] = {}
        for path in self.git.submodule_paths(repo_root):
            name = path.relative_to(repo_root).as_posix()
            logger.info("Updating", repo=name)
            self.git.reset_hard(path)
            self.git.fetch(path)
            refs[name] = self.git.checkout_latest(path, force=force)
        return refs

"""
Build configuration: defaults, config file, environment, then CLI overrides.
"""

import os
import json
import logging
import platform
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .error_handling import ConfigurationError

DEFAULT_CONFIG_NAMES = ("sitterforge.yaml", "sitterforge.yml", "sitterforge.json")
SCANNER_CONFLICT_POLICIES = ("prefer-c", "error")
PATH_FIELDS = ("root", "prefix", "repo_root", "log_file")


def shared_library_extension(system: Optional[str] = None) -> str:
    """Shared library suffix for the host (or the given ``platform.system()``)."""
    system = system if system is not None else platform.system()
    if system == "Darwin":
        return "dylib"
    if system == "Windows" or system.upper().startswith(("MINGW", "MSYS", "CYGWIN")):
        return "dll"
    return "so"


@dataclass
class BuildConfig:
    """Everything the orchestrator needs, resolved once."""

    root: Path = field(default_factory=Path.cwd)
    prefix: Path = field(default_factory=lambda: Path.home() / ".local")
    repo_root: Optional[Path] = None
    cc: str = "cc"
    cxx: str = "c++"
    # Emacs crashes when a loaded shared library is overwritten in place.
    inside_editor: bool = False
    editor_suffix: str = "_new"
    core_dir: str = "tree-sitter"
    repo_prefix: str = "tree-sitter-"
    make_jobs: int = 8
    scanner_conflict: str = "prefer-c"
    shared_ext: str = field(default_factory=shared_library_extension)
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Optional[Path] = None
    recipes: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in PATH_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value).expanduser())
        if self.repo_root is None:
            self.repo_root = self.root.parent
        elif not self.repo_root.is_absolute():
            self.repo_root = Path(os.path.normpath(self.root / self.repo_root))

    @property
    def include_dir(self) -> Path:
        return self.prefix / "include"

    @property
    def lib_dir(self) -> Path:
        return self.prefix / "lib"

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            k: (str(v) if isinstance(v, Path) else v)
            for k, v in asdict(self).items()
        }


class ConfigManager:
    """Loads and validates the build configuration."""

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        env_prefix: str = "SITTERFORGE_"
    ):
        """Initialize config manager.

        Args:
            environ: Environment to read (defaults to os.environ)
            env_prefix: Prefix for per-field override variables
        """
        self.environ = dict(os.environ if environ is None else environ)
        self.env_prefix = env_prefix

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        """Load YAML config file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load config file: {path}",
                details={"error": str(e)}
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must hold a mapping: {path}")
        return data

    def _load_json(self, path: Path) -> Dict[str, Any]:
        """Load JSON config file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load config file: {path}",
                details={"error": str(e)}
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must hold a mapping: {path}")
        return data

    def load_file(self, path: Union[str, Path]) -> Dict[str, Any]:
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Config file not found: {path}")
        if path.suffix == ".json":
            return self._load_json(path)
        return self._load_yaml(path)

    def find_config_file(self, root: Path) -> Optional[Path]:
        for name in DEFAULT_CONFIG_NAMES:
            candidate = root / name
            if candidate.is_file():
                return candidate
        return None

    def _toolchain_env(self) -> Dict[str, Any]:
        """Variables the build has always honored without a prefix."""
        values: Dict[str, Any] = {}
        if self.environ.get("CC"):
            values["cc"] = self.environ["CC"]
        if self.environ.get("CXX"):
            values["cxx"] = self.environ["CXX"]
        if self.environ.get("INSIDE_EMACS"):
            values["inside_editor"] = True
        if self.environ.get("HOME"):
            values["prefix"] = Path(self.environ["HOME"]) / ".local"
        return values

    def _apply_env_overrides(self, config: Dict[str, Any]) -> None:
        """Apply SITTERFORGE_<FIELD> overrides, coerced to the default's type."""
        defaults = BuildConfig()
        for f in fields(BuildConfig):
            env_value = self.environ.get(f"{self.env_prefix}{f.name.upper()}")
            if env_value is None:
                continue
            current_value = getattr(defaults, f.name)
            try:
                if isinstance(current_value, bool):
                    config[f.name] = env_value.lower() in ('true', '1', 'yes')
                elif isinstance(current_value, int):
                    config[f.name] = int(env_value)
                elif isinstance(current_value, dict):
                    config[f.name] = yaml.safe_load(env_value) or {}
                else:
                    config[f.name] = env_value
            except (ValueError, yaml.YAMLError) as e:
                raise ConfigurationError(
                    f"Invalid value for {self.env_prefix}{f.name.upper()}",
                    details={"value": env_value, "error": str(e)}
                ) from e

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """Validate configuration values."""
        unknown = set(config) - {f.name for f in fields(BuildConfig)}
        if unknown:
            raise ConfigurationError(
                "Unknown config fields",
                details={"fields": sorted(unknown)}
            )

        policy = config.get("scanner_conflict", "prefer-c")
        if policy not in SCANNER_CONFLICT_POLICIES:
            raise ConfigurationError(
                f"Invalid scanner_conflict policy: {policy}",
                details={"allowed": list(SCANNER_CONFLICT_POLICIES)}
            )

        jobs = config.get("make_jobs", 1)
        if not isinstance(jobs, int) or isinstance(jobs, bool) or jobs < 1:
            raise ConfigurationError("make_jobs must be a positive integer", details={"make_jobs": jobs})

        level = str(config.get("log_level", "INFO")).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigurationError(f"Invalid log level: {level}")
        config["log_level"] = level

        if not isinstance(config.get("recipes", {}), dict):
            raise ConfigurationError("recipes must be a mapping of token to recipe")

    def load_config(
        self,
        root: Optional[Union[str, Path]] = None,
        config_file: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> BuildConfig:
        """Resolve the build configuration.

        Precedence, lowest first: built-in defaults, toolchain environment
        (CC, CXX, INSIDE_EMACS, HOME), config file, SITTERFORGE_* environment,
        explicit overrides.
        """
        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        root_path = Path(root or overrides.get("root") or Path.cwd()).expanduser().resolve()

        merged: Dict[str, Any] = self._toolchain_env()

        path = Path(config_file) if config_file else self.find_config_file(root_path)
        if path is not None:
            merged.update(self.load_file(path))

        self._apply_env_overrides(merged)
        if "root" in merged:
            raise ConfigurationError(
                "root can only be set with --root",
                details={"root": str(merged["root"])}
            )
        merged.update(overrides)
        merged["root"] = root_path

        self._validate_config(merged)

        try:
            return BuildConfig(**merged)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

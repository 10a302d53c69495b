"""Language token to build recipe dispatch.

Most grammars live in ``<root>/tree-sitter-<token>`` and produce
``libtree-sitter-<token>``. A few repositories keep their grammar in a
subdirectory, name the artifact differently, or ship several grammars at
once; those are listed in ``BUILTIN_RECIPES``.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .utils.error_handling import ConfigurationError


@dataclass(frozen=True)
class BuildTarget:
    """One directory to compile and the artifact name it produces."""

    directory: Path
    artifact: str


@dataclass(frozen=True)
class SingleDirectory:
    """The repository root is the grammar; the artifact is the token."""

    kind = "single"

    def targets(self, repo_dir: Path, token: str) -> List[BuildTarget]:
        return [BuildTarget(repo_dir, token)]

    def describe(self) -> str:
        return "."


@dataclass(frozen=True)
class RenamedDirectory:
    """A single grammar under a different artifact name or subdirectory."""

    artifact: str
    subdir: str = ""

    kind = "renamed"

    def targets(self, repo_dir: Path, token: str) -> List[BuildTarget]:
        directory = repo_dir / self.subdir if self.subdir else repo_dir
        return [BuildTarget(directory, self.artifact)]

    def describe(self) -> str:
        return f"{self.subdir or '.'} -> {self.artifact}"


@dataclass(frozen=True)
class MultiDirectory:
    """Several grammars in one repository, built in order."""

    parts: Tuple[Tuple[str, str], ...]

    kind = "multi"

    def targets(self, repo_dir: Path, token: str) -> List[BuildTarget]:
        return [BuildTarget(repo_dir / subdir, artifact) for subdir, artifact in self.parts]

    def describe(self) -> str:
        return ", ".join(f"{subdir} -> {artifact}" for subdir, artifact in self.parts)


Recipe = Union[SingleDirectory, RenamedDirectory, MultiDirectory]

BUILTIN_RECIPES: Dict[str, Recipe] = {
    "go-mod": RenamedDirectory(artifact="gomod"),
    "php": RenamedDirectory(artifact="php", subdir="php"),
    "typescript": MultiDirectory(parts=(("typescript", "typescript"), ("tsx", "tsx"))),
    "markdown": MultiDirectory(parts=(
        ("tree-sitter-markdown", "markdown"),
        ("tree-sitter-markdown-inline", "markdown_inline"),
    )),
    "ocaml": MultiDirectory(parts=(
        ("grammars/ocaml", "ocaml"),
        ("grammars/interface", "ocaml_interface"),
    )),
    "xml": MultiDirectory(parts=(("xml", "xml"), ("dtd", "dtd"))),
}


def recipe_from_mapping(token: str, entry: Mapping[str, Any]) -> Recipe:
    """Build a recipe from a config file entry.

    ``{artifact: gomod, subdir: ""}`` gives a renamed build and
    ``{parts: [[typescript, typescript], [tsx, tsx]]}`` a multi build.
    """
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Recipe for '{token}' must be a mapping", details={"entry": entry})

    if "parts" in entry:
        parts = entry["parts"]
        if not parts or not all(
            isinstance(part, (list, tuple)) and len(part) == 2 and all(isinstance(p, str) for p in part)
            for part in parts
        ):
            raise ConfigurationError(
                f"Recipe '{token}': parts must be a non-empty list of [subdir, artifact] pairs",
                details={"parts": parts}
            )
        return MultiDirectory(parts=tuple((subdir, artifact) for subdir, artifact in parts))

    if "artifact" in entry or "subdir" in entry:
        artifact = entry.get("artifact", token)
        subdir = entry.get("subdir", "") or ""
        if not isinstance(artifact, str) or not isinstance(subdir, str):
            raise ConfigurationError(f"Recipe '{token}': artifact and subdir must be strings")
        return RenamedDirectory(artifact=artifact, subdir=subdir)

    raise ConfigurationError(
        f"Recipe '{token}' needs either 'parts' or 'artifact'/'subdir'",
        details={"entry": dict(entry)}
    )


class RecipeTable:
    """Token lookup resolved once, with unknown tokens falling back to a single directory build."""

    def __init__(self, extra: Optional[Mapping[str, Any]] = None):
        self._recipes: Dict[str, Recipe] = dict(BUILTIN_RECIPES)
        for token, entry in (extra or {}).items():
            self._recipes[token] = recipe_from_mapping(token, entry)

    def resolve(self, token: str) -> Recipe:
        return self._recipes.get(token, SingleDirectory())

    def __contains__(self, token: str) -> bool:
        return token in self._recipes

    def items(self):
        return sorted(self._recipes.items())

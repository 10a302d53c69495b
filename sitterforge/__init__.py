"""
Build the tree-sitter core library and per-language grammar plugins.
"""

# flake8: noqa
# Ignore F401: Imported but unused

__version__ = "0.1.0"

from .orchestrator import BuildOrchestrator
from .recipes import (
    BuildTarget,
    MultiDirectory,
    RecipeTable,
    RenamedDirectory,
    SingleDirectory,
)
from .utils.config import BuildConfig, ConfigManager
from .utils.error_handling import (
    CommandError,
    ConfigurationError,
    PreconditionError,
    SitterError,
    UsageError,
)

__all__ = [
    # Orchestration
    "BuildOrchestrator",

    # Recipes
    "BuildTarget",
    "MultiDirectory",
    "RecipeTable",
    "RenamedDirectory",
    "SingleDirectory",

    # Configuration
    "BuildConfig",
    "ConfigManager",

    # Errors
    "CommandError",
    "ConfigurationError",
    "PreconditionError",
    "SitterError",
    "UsageError",
]

#!/usr/bin/env python3
"""Build tree-sitter and its friends.

Without any language, the core library and every grammar under the root are
built. More parsers can be found in
https://github.com/tree-sitter/tree-sitter/blob/master/docs/index.md
"""

import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from .orchestrator import BuildOrchestrator
from .utils.config import ConfigManager
from .utils.error_handling import SitterError, format_error_report
from .utils.logging import LogManager

console = Console(stderr=True)


def _print_installed(paths: List[Path]) -> None:
    if not paths:
        return
    table = Table(title="Installed")
    table.add_column("Artifact")
    table.add_column("Path")
    for path in paths:
        table.add_row(path.name, str(path.parent))
    console.print(table)


def _print_recipes(orchestrator: BuildOrchestrator) -> None:
    table = Table(title=f"Grammars in {orchestrator.config.root}")
    table.add_column("Token")
    table.add_column("Recipe")
    table.add_column("Targets")
    for token in orchestrator.discover_tokens():
        recipe = orchestrator.recipes.resolve(token)
        table.add_row(token, recipe.kind, recipe.describe())
    console.print(table)


def run(
    orchestrator: BuildOrchestrator,
    languages: Tuple[str, ...],
    add: Optional[str],
    update: bool,
    force: bool,
    core: bool,
) -> List[Path]:
    installed: List[Path] = []

    if update:
        for name, ref in orchestrator.update_all(force=force).items():
            console.print(f"[green]{name}[/green] -> {ref}")

    if add:
        return orchestrator.add_language(add, force=force)

    if core:
        orchestrator.build_core()
        return installed

    if languages:
        core_tokens = {"core", orchestrator.config.core_dir}
        for lang in languages:
            if lang in core_tokens:
                orchestrator.build_core()
            else:
                installed.extend(orchestrator.build_language(lang))
        return installed

    orchestrator.build_core()
    installed.extend(orchestrator.build_all())
    return installed


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("languages", nargs=-1)
@click.option("--add", "-a", metavar="URL", help="Add one (and only one) new language.")
@click.option("--update", "-u", is_flag=True, help="Update every grammar to its latest tag.")
@click.option("--force", "-f", is_flag=True, help="Override safety checks during add/update.")
@click.option("--core", "-c", is_flag=True, help="Build the tree-sitter library only.")
@click.option("--debug", "-d", is_flag=True, help="Show debug messages.")
@click.option("--list", "-l", "list_only", is_flag=True, help="List grammars and their recipes.")
@click.option("--root", "-C", type=click.Path(file_okay=False, path_type=Path),
              help="Directory holding the grammar trees (default: current directory).")
@click.option("--prefix", type=click.Path(file_okay=False, path_type=Path),
              help="Install prefix (default: ~/.local).")
@click.option("--config", "config_file", type=click.Path(dir_okay=False, path_type=Path),
              help="YAML or JSON config file.")
def cli(languages, add, update, force, core, debug, list_only, root, prefix, config_file):
    """Build treesitter and its friends."""
    if add and languages:
        raise click.UsageError("--add takes exactly one URL and no languages.")

    try:
        config = ConfigManager().load_config(
            root=root,
            config_file=config_file,
            overrides={"prefix": prefix, "log_level": "DEBUG" if debug else None},
        )
        LogManager(
            log_level=config.log_level,
            log_file=config.log_file,
            enable_json=config.log_json,
        )
        console.print(f"CC: {config.cc}\nCXX: {config.cxx}", highlight=False)

        orchestrator = BuildOrchestrator(config)
        if list_only:
            _print_recipes(orchestrator)
            return

        installed = run(orchestrator, languages, add, update, force, core)
    except SitterError as e:
        console.print(format_error_report(e), style="red", highlight=False, markup=False)
        sys.exit(e.exit_code)

    _print_installed(installed)


def main(argv: Optional[List[str]] = None) -> None:
    """Console entry point; usage errors exit with status 1."""
    try:
        cli.main(args=argv, prog_name="sitterforge", standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(1)
    except click.Abort:
        console.print("Aborted!")
        sys.exit(1)


if __name__ == "__main__":
    main()

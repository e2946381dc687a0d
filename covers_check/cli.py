"""CLI entry point: command definitions using Click.

Commands:
    init     Generate a template config file
    check    Check the @covers annotations of test files without running them
"""

import json
import logging
import sys
from typing import Any

import click

from covers_check import __version__


# ---------------------------------------------------------------------------
# Helpers shared by all data commands
# ---------------------------------------------------------------------------

def _load_config(ctx: click.Context):
    """Load the config, applying --source overrides. Exits on error."""
    from covers_check.config import ConfigError, load

    obj = ctx.obj
    try:
        config = load(obj["config_path"], required=obj["config_explicit"])
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    if obj["sources"]:
        config.source_roots = list(obj["sources"])
    return config


def _emit_json(data: Any, ctx: click.Context) -> None:
    """Write JSON to stdout or to the file specified by --output."""
    obj = ctx.obj
    indent = 2 if obj["pretty"] else None
    text = json.dumps(data, indent=indent, ensure_ascii=False)

    output_path: str | None = obj["output_path"]
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
        click.echo(f"Report written to '{output_path}'", err=True)
    else:
        click.echo(text)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default=None,
              help="Path to the configuration file. [default: covers-check.yaml if present]")
@click.option("--source", "sources", multiple=True,
              help="Source root to index (repeatable, replaces the configured roots).")
@click.option("--output", "output_path", default=None,
              help="Write JSON output to a file instead of stdout.")
@click.option("--pretty", is_flag=True, default=False,
              help="Pretty-print the JSON output.")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable verbose logging.")
@click.version_option(__version__, prog_name="covers-check")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, sources: tuple[str, ...],
        output_path: str | None, pretty: bool, verbose: bool) -> None:
    """Check that @covers test annotations name code that exists."""
    from covers_check.config import DEFAULT_CONFIG_PATH

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path or DEFAULT_CONFIG_PATH
    ctx.obj["config_explicit"] = config_path is not None
    ctx.obj["sources"] = sources
    ctx.obj["output_path"] = output_path
    ctx.obj["pretty"] = pretty
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="[%(levelname)s] %(name)s: %(message)s")


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="covers-check.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template covers-check.yaml file."""
    from covers_check.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your source roots and test paths.")
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------

@cli.command("check")
@click.argument("paths", nargs=-1)
@click.pass_context
def check_command(ctx: click.Context, paths: tuple[str, ...]) -> None:
    """Check test files under PATHS (default: the configured test_paths).

    Exits with status 1 when any violation is found.
    """
    from covers_check.collect import collect_paths, count_tests
    from covers_check.dispatcher import CompletionDispatcher, ViolationCollector
    from covers_check.reports.violations import build_report
    from covers_check.resolver import SymbolIndex

    config = _load_config(ctx)
    test_paths = list(paths) or config.test_paths

    if ctx.obj["verbose"]:
        click.echo(f"[verbose] Indexing source roots: {', '.join(config.source_roots)}", err=True)
    index = SymbolIndex.from_paths(config.source_roots, config.interface_bases)

    if ctx.obj["verbose"]:
        click.echo(f"[verbose] Collecting tests from: {', '.join(test_paths)}", err=True)
    suite, annotations = collect_paths(test_paths)

    sink = ViolationCollector()
    CompletionDispatcher(index, sink, annotations.for_test).on_test_completed(suite)

    report = build_report(sink.violations, count_tests(suite), test_paths)
    _emit_json(report, ctx)
    if sink.violations:
        sys.exit(1)

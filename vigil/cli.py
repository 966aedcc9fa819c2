# Vigil: Static Security Analyzer for Python
# Copyright (C) 2026 Vigil Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""Vigil CLI: Typer entry point.

Commands:
- vigil scan <path>  : run the rule engine over a file or source tree
- vigil rules        : list the built-in rules
- vigil version      : print the version
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from vigil import __version__
from vigil.config import ConfigError, ScanConfig, find_config, load_config
from vigil.engine.analyzer import Analyzer
from vigil.engine.rule import RuleConfigError
from vigil.reporter.console_out import console, print_report
from vigil.reporter.json_out import render_report, write_report
from vigil.rules import RULE_DEFINITIONS
from vigil.scanner.fix_suggestions import suggest_fixes
from vigil.scanner.llm_client import create_generator

app = typer.Typer(
    name="vigil",
    help=(
        "Vigil: static security analyzer for Python. "
        "Run 'vigil <command> --help' for flags (e.g. vigil scan --help for --audit, --json, -j)."
    ),
    add_completion=False,
)

logger = logging.getLogger("vigil")


def _configure_logging(verbose: bool, quiet: bool) -> None:
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    # Suppress noisy third-party logs
    for _name in ("httpcore", "httpx"):
        _lg = logging.getLogger(_name)
        _lg.setLevel(logging.WARNING)


def _load_run_config(target: Path, config_path: Optional[str]) -> ScanConfig:
    if config_path:
        return load_config(Path(config_path))
    found = find_config(target)
    if found is not None:
        logger.info("Using config %s", found)
        return load_config(found)
    return ScanConfig()


@app.command()
def scan(
    path: str = typer.Argument(".", help="File or directory to scan (default: current directory)"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-j", help="Number of packages analyzed in parallel"),
    audit: bool = typer.Option(False, "--audit", help="Keep suppressed issues in the output and mark them"),
    nosec: bool = typer.Option(False, "--nosec", help="Ignore in-source suppression directives"),
    nosec_tag: Optional[str] = typer.Option(None, "--nosec-tag", help="Use this tag instead of 'nosec'"),
    exclude: Optional[str] = typer.Option(None, "--exclude", help="Comma-separated rule IDs to exclude"),
    include: Optional[str] = typer.Option(None, "--include", help="Comma-separated rule IDs to run (default: all)"),
    tests: bool = typer.Option(False, "--tests", help="Also scan test files"),
    exclude_generated: bool = typer.Option(False, "--exclude-generated", help="Skip generated files"),
    severity: Optional[str] = typer.Option(None, "--severity", help="Minimum severity to report (low, medium, high)"),
    confidence: Optional[str] = typer.Option(None, "--confidence", help="Minimum confidence to report (low, medium, high)"),
    exclude_dir: Optional[list[str]] = typer.Option(None, "--exclude-dir", help="Directory to skip; repeatable"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to vigil.yaml (default: <path>/vigil.yaml)"),
    output_json: bool = typer.Option(False, "--json", help="Output canonical JSON to stdout (for CI)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the JSON report to this file"),
    no_fail: bool = typer.Option(False, "--no-fail", help="Exit 0 even when issues are found"),
    fix: bool = typer.Option(False, "--fix", help="Attach fix suggestions (LLM-backed when 'ai' is configured)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress all output except errors"),
) -> None:
    """Scan Python sources for security issues.

    Exits 1 when unsuppressed issues are found (unless --no-fail) or on a
    configuration error.
    """
    _configure_logging(verbose, quiet)

    target = Path(path).resolve()
    if not target.exists():
        console.print(f"[red]Error: Path not found: {escape(str(target))}[/red]")
        raise typer.Exit(code=1)

    try:
        config = _load_run_config(target, config_path).with_overrides(
            concurrency=concurrency,
            track_suppressions=audit or None,
            ignore_nosec=nosec or None,
            nosec_tag=nosec_tag,
            exclude_rules=exclude,
            include_rules=include,
            scan_tests=tests or None,
            exclude_generated=exclude_generated or None,
            min_severity=severity,
            min_confidence=confidence,
            exclude_dirs=exclude_dir or None,
        )
        analyzer = Analyzer(config)
    except (ConfigError, RuleConfigError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    try:
        result = analyzer.scan(target)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    if fix:
        suggest_fixes(result.issues, create_generator(config.ai))

    if output:
        write_report(result, Path(output))

    if output_json:
        typer.echo(render_report(result), nl=False)
    elif not quiet:
        print_report(result, audit=config.track_suppressions, show_fix=fix, target=str(target))

    if result.unsuppressed and not no_fail:
        raise typer.Exit(code=1)


@app.command()
def rules() -> None:
    """List the built-in rules."""
    table = Table(show_header=True, header_style="bold dim", border_style="dim")
    table.add_column("ID", style="bold", no_wrap=True)
    table.add_column("Description")
    for definition in RULE_DEFINITIONS:
        table.add_row(definition.id, definition.description)
    console.print(table)


@app.command()
def version() -> None:
    """Show the Vigil version."""
    console.print(f"Vigil v{__version__}")


if __name__ == "__main__":
    app()

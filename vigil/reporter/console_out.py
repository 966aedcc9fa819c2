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

"""Rich terminal output for scan results."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from vigil.models.issue import FileError, Issue, RunMetrics, ScanResult, Score


def _make_console() -> Console:
    """Console with soft wrap. No fixed width, uses live terminal size."""
    return Console(soft_wrap=True)


console = _make_console()

SEVERITY_STYLE = {
    Score.HIGH: "bold red",
    Score.MEDIUM: "yellow",
    Score.LOW: "cyan",
}


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


# ── Tables ────────────────────────────────────────────────


def _issue_table(issues: list[Issue], title: str, border_style: str, show_fix: bool = False) -> Table:
    table = Table(
        show_header=True,
        header_style="bold dim",
        border_style=border_style,
        title=title,
        title_justify="left",
        padding=(0, 1),
        expand=True,
    )
    table.add_column("Rule", style="bold", no_wrap=True)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Confidence", style="dim", no_wrap=True)
    table.add_column("CWE", style="dim", no_wrap=True)
    table.add_column("Location", style="white", ratio=1, min_width=8, overflow="fold")
    table.add_column("Message", ratio=2, min_width=8, overflow="fold")
    if show_fix:
        table.add_column("Suggested fix", style="green", ratio=2, min_width=8, overflow="fold")

    for issue in issues:
        message = issue.message
        justifications = [s.justification for s in issue.suppressions if s.justification]
        if justifications:
            message += f"\n[dim]({'; '.join(justifications)})[/dim]"
        row = [
            issue.rule_id,
            Text(issue.severity.value, style=SEVERITY_STYLE[issue.severity]),
            issue.confidence.value,
            f"CWE-{issue.cwe.id}" if issue.cwe else "",
            f"{issue.file}:{issue.line}:{issue.col}",
            message,
        ]
        if show_fix:
            row.append(_truncate(issue.autofix or "", 400))
        table.add_row(*row)
    return table


def print_issues(issues: list[Issue], show_fix: bool = False) -> None:
    if not issues:
        console.print("[green]No issues found.[/green]")
        return
    console.print(_issue_table(issues, f"[bold red]Issues ({len(issues)})[/bold red]", "red", show_fix))


def print_suppressed(issues: list[Issue]) -> None:
    if not issues:
        return
    console.print(_issue_table(issues, f"[bold dim]Suppressed ({len(issues)})[/bold dim]", "dim"))


def print_errors(errors: dict[str, list[FileError]]) -> None:
    if not errors:
        return
    table = Table(
        show_header=True,
        header_style="bold yellow",
        border_style="dim",
        title="[bold yellow]Errors[/bold yellow]",
        title_justify="left",
        expand=True,
    )
    table.add_column("File", style="white", ratio=2, min_width=8, overflow="fold")
    table.add_column("Line", style="dim", justify="right", min_width=4)
    table.add_column("Column", style="dim", justify="right", min_width=4)
    table.add_column("Rule", style="yellow", no_wrap=True)
    table.add_column("Error", ratio=3, min_width=8, overflow="fold")
    for file, file_errors in errors.items():
        for error in file_errors:
            table.add_row(file, str(error.line), str(error.column), error.rule_id or "", error.message)
    console.print(table)


def print_summary(metrics: RunMetrics, suppressed: int = 0) -> None:
    text = Text()
    text.append("Files:  ", style="dim")
    text.append(f"{metrics.files}\n")
    text.append("Lines:  ", style="dim")
    text.append(f"{metrics.lines}\n")
    text.append("Nosec:  ", style="dim")
    text.append(f"{metrics.nosec}\n")
    text.append("Issues: ", style="dim")
    text.append(str(metrics.found), style="bold red" if metrics.found else "bold green")
    if suppressed:
        text.append(f"\nSuppressed (audit): {suppressed}", style="dim")
    console.print(
        Panel(text, title="[bold]Summary[/bold]", title_align="left", border_style="white", expand=False)
    )


def print_report(result: ScanResult, audit: bool = False, show_fix: bool = False, target: Optional[str] = None) -> None:
    """Issues, then suppressed issues in audit mode, then errors and the summary."""
    if target:
        console.print(f"[bold cyan]VIGIL SECURITY SCAN[/bold cyan]  [dim]{target}[/dim]")
    print_issues(result.unsuppressed, show_fix=show_fix)
    suppressed = [i for i in result.issues if i.suppressed]
    if audit:
        print_suppressed(suppressed)
    print_errors(result.errors)
    print_summary(result.metrics, suppressed=len(suppressed) if audit else 0)

"""Rich console setup and orchestrator progress helpers."""

from __future__ import annotations

import logging
from typing import Protocol

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .models import Check, CheckStatus, Section, VerificationResult

console = Console()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logger with Rich handler."""
    level = logging.DEBUG if verbose else (logging.ERROR if quiet else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Orchestrator callbacks protocol
# ---------------------------------------------------------------------------


class OrchestratorCallbacks(Protocol):
    """Protocol for orchestrator progress reporting."""

    def on_phase_start(self, phase: str, description: str) -> None: ...
    def on_phase_end(self, phase: str, success: bool) -> None: ...
    def on_section_start(self, section_id: str, title: str) -> None: ...
    def on_section_end(self, section_id: str, word_count: int | None) -> None: ...
    def on_chapter_finalized(self, section_id: str, references_added: bool) -> None: ...
    def on_status(self, message: str) -> None: ...
    def on_warning(self, message: str) -> None: ...
    def on_error(self, message: str) -> None: ...


class RichCallbacks:
    """Rich-based implementation of OrchestratorCallbacks."""

    def __init__(self, *, quiet: bool = False) -> None:
        self.quiet = quiet

    def on_phase_start(self, phase: str, description: str) -> None:
        console.rule(f"[bold blue]{phase}[/] — {description}")

    def on_phase_end(self, phase: str, success: bool) -> None:
        status = "[green]OK[/]" if success else "[red]FAILED[/]"
        console.print(f"  Phase {phase}: {status}")

    def on_section_start(self, section_id: str, title: str) -> None:
        if not self.quiet:
            console.print(f"  [dim]Generating:[/] {section_id} - {title}")

    def on_section_end(self, section_id: str, word_count: int | None) -> None:
        if not self.quiet:
            words = f"{word_count} words" if word_count is not None else "no metadata"
            console.print(f"  [dim]Done:[/] {section_id} ({words})")

    def on_chapter_finalized(self, section_id: str, references_added: bool) -> None:
        refs = "references appended" if references_added else "no references"
        console.print(f"  [cyan]Chapter closed at {section_id}[/] ({refs})")

    def on_status(self, message: str) -> None:
        if not self.quiet:
            console.print(f"  [bold]{message}[/]")

    def on_warning(self, message: str) -> None:
        console.print(f"  [yellow]WARNING:[/] {message}")

    def on_error(self, message: str) -> None:
        console.print(f"  [red]ERROR:[/] {message}")


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

_CHECK_STYLE = {
    CheckStatus.PENDING: "dim",
    CheckStatus.RUNNING: "cyan",
    CheckStatus.SUCCESS: "green",
    CheckStatus.FAILURE: "red",
}


def render_plan_table(plan: list[Section], cursor: int | None = None) -> Table:
    """Plan overview: budgets, expansion notes, progress and flags."""
    table = Table(title="Thesis Plan", show_lines=False)
    table.add_column("#", style="dim", width=4)
    table.add_column("Section ID", style="cyan")
    table.add_column("Title")
    table.add_column("Lvl", justify="right")
    table.add_column("Plan", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("Adjustment")
    table.add_column("State")

    for i, s in enumerate(plan):
        if s.is_flagged:
            state = "[red]flagged[/]"
        elif cursor is not None and i == cursor:
            state = "[cyan]next[/]"
        elif s.content:
            state = "[green]done[/]"
        else:
            state = ""
        indent = "  " * max(s.level - 1, 0)
        table.add_row(
            str(i),
            s.id,
            indent + s.title,
            str(s.level),
            f"{s.original_word_count or 0:,}",
            f"{s.target_word_count:,}" if s.target_word_count else "—",
            s.justification or "",
            state,
        )
    return table


def render_checks_table(checks: list[Check]) -> Table:
    table = Table(title="Reproducibility Checks")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Details")
    for c in checks:
        style = _CHECK_STYLE.get(c.status, "")
        table.add_row(c.label, f"[{style}]{c.status.value}[/]", c.details)
    return table


def print_verification(result: VerificationResult) -> None:
    if result.passed:
        console.print("[bold green]Verification PASSED[/]")
    else:
        console.print("[bold red]Verification FAILED[/]")
    console.print(
        f"  Words: {result.cumulative_word_count:,} / {result.global_target:,}"
    )
    for reason in result.reasons:
        console.print(f"    [red]-[/] {reason}")
    if result.checks:
        console.print(render_checks_table(result.checks))

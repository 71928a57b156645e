"""Rich rendering of search results and glossary reports."""

from __future__ import annotations

import dataclasses
import datetime
import enum
from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tasksift.core.exceptions import ConfigValidationError
from tasksift.search.dates import describe_time_context
from tasksift.search.glossary import PropertyGlossary, RepairReport, SortPositionReport
from tasksift.search.types import SearchResult


def _format_date(value: Optional[datetime.date]) -> str:
    return value.isoformat() if value else "-"


def json_default(value: Any) -> Any:
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _filter_dict(value: Any) -> Any:
    if value is None:
        return None
    return {"type": type(value).__name__, **dataclasses.asdict(value)}


def result_to_dict(result: SearchResult, limit: Optional[int] = None) -> Dict[str, Any]:
    """Plain-data view of a search result for ``--json`` output."""
    ranked = result.ranked[:limit] if limit else result.ranked
    query = result.query
    return {
        "query": {
            "core_keywords": list(query.core_keywords),
            "expanded_keywords": list(query.expanded_keywords),
            "priority_filter": _filter_dict(query.priority_filter),
            "due_date_filter": _filter_dict(query.due_date_filter),
            "status_filter": list(query.status_filter),
            "tags_filter": list(query.tags_filter),
            "folder_filter": query.folder_filter,
            "is_vague": query.is_vague,
            "time_context": query.time_context,
            "confidence": query.confidence,
        },
        "diagnostics": dataclasses.asdict(result.diagnostics),
        "total_matches": result.total_matches,
        "no_filters_extracted": result.no_filters_extracted,
        "ranked": [
            {
                "task_id": item.task_id,
                "final_score": round(item.final_score, 6),
                "breakdown": dataclasses.asdict(item.breakdown),
                "text": item.task.text,
                "due_date": item.task.due_date,
                "priority": item.task.priority,
                "status": item.task.status,
            }
            for item in ranked
        ],
    }


def render_results(
    console: Console,
    result: SearchResult,
    glossary: PropertyGlossary,
    limit: Optional[int] = None,
) -> None:
    ranked = result.ranked[:limit] if limit else result.ranked
    if result.no_filters_extracted:
        console.print(
            Panel(
                "No filters or keywords could be extracted and nothing matched.",
                title="No results",
                border_style="yellow",
            )
        )
    else:
        table = Table(
            title=f"Tasks ({len(ranked)} of {result.total_matches})",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("#", justify="right", style="dim", width=4)
        table.add_column("Score", justify="right", width=8)
        table.add_column("R / D / P / S", style="dim")
        table.add_column("Due", width=10)
        table.add_column("P", justify="right", width=2)
        table.add_column("Status")
        table.add_column("Task", style="white")

        for index, item in enumerate(ranked, start=1):
            b = item.breakdown
            status = item.task.status
            category = glossary.category(
                glossary.resolve_status(status, from_task=True) if status is not None else None
            )
            table.add_row(
                str(index),
                f"{item.final_score:.3f}",
                f"{b.relevance:.2f} / {b.due_date:.2f} / {b.priority:.2f} / {b.status:.2f}",
                _format_date(item.task.due_date),
                str(item.task.priority or "-"),
                category.display_name if category else (item.task.status or "-"),
                item.task.text,
            )
        if not ranked:
            table.add_row("-", "-", "-", "-", "-", "-", "No matching tasks.")
        console.print(table)

    render_diagnostics(console, result)


def render_diagnostics(console: Console, result: SearchResult) -> None:
    diagnostics = result.diagnostics
    query = result.query
    lines = [f"Outcome: {diagnostics.outcome.value}"]
    if diagnostics.used_fallback:
        lines.append("Used rule-based fallback: yes")
    if diagnostics.confidence is not None:
        lines.append(f"AI confidence: {diagnostics.confidence:.2f}")
    lines.append(f"Vague query: {'yes' if diagnostics.is_vague else 'no'}")
    if diagnostics.time_context:
        lines.append(f"Time context: {describe_time_context(diagnostics.time_context)}")
    if query.core_keywords:
        lines.append(f"Keywords: {', '.join(query.core_keywords)}")
    extra = [kw for kw in query.expanded_keywords if kw not in query.core_keywords]
    if extra:
        lines.append(f"Expanded: {', '.join(extra)}")
    if diagnostics.cancelled:
        lines.append("Language model call cancelled.")
    border = "green"
    if diagnostics.failure:
        lines.append(f"Failure: {diagnostics.failure}")
        lines.append(f"Hint: {diagnostics.remediation}")
        border = "yellow"
    console.print(Panel("\n".join(lines), title="Query", border_style=border, expand=False))


def render_config_error(console: Console, error: ConfigValidationError) -> None:
    console.print(f"[bold red]Invalid configuration ({error.source}):[/bold red]")
    for issue in error.issues:
        console.print(f"[red]- {issue}[/red]")


def render_warnings(console: Console, warnings: Sequence[str], title: str) -> None:
    if not warnings:
        return
    console.print(
        Panel(
            "\n".join(f"- {warning}" for warning in warnings),
            title=f"{title} ({len(warnings)})",
            border_style="yellow",
        )
    )


def render_sort_positions(
    console: Console, glossary: PropertyGlossary, report: SortPositionReport
) -> None:
    table = Table(title="Status categories", show_header=True, header_style="bold blue")
    table.add_column("Key", style="bold")
    table.add_column("Display name")
    table.add_column("Order", justify="right")
    table.add_column("Effective", justify="right", style="dim")
    table.add_column("Score", justify="right")

    conflicting = {key for conflict in report.conflicts for key in conflict.categories}
    for category in glossary.statuses:
        order = str(category.order) if category.order is not None else "-"
        if category.key in conflicting:
            order = f"[red]{order}[/red]"
        table.add_row(
            category.key,
            category.display_name,
            order,
            str(glossary.effective_order(category.key)),
            f"{category.score:.2f}",
        )
    console.print(table)
    render_warnings(console, report.warnings, "Sort position conflicts")


def render_repair(console: Console, report: RepairReport) -> None:
    if not report.changed:
        console.print("[green]No sort position conflicts, nothing to repair.[/green]")
        return
    table = Table(title="Repaired sort positions", show_header=True, header_style="bold green")
    table.add_column("Category", style="bold")
    table.add_column("Old", justify="right")
    table.add_column("New", justify="right")
    for change in report.changes:
        old = str(change.old) if change.old is not None else "-"
        table.add_row(change.key, old, str(change.new))
    console.print(table)

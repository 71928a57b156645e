"""Command-line interface for tasksift."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from rich.console import Console

from tasksift.config import DEFAULT_MODEL, LOG_FILE, LOG_LEVEL, MODELS
from tasksift.core.exceptions import ConfigValidationError, TasksiftError
from tasksift.logger import setup_logging

console = Console()
logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="tasksift",
        description="Ask questions about your tasks and get a ranked answer.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log at DEBUG level.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    query = subparsers.add_parser(
        "query",
        help="Run a free-text or shorthand query against a task file.",
        formatter_class=argparse.RawTextHelpFormatter,
        description=(
            "Examples:\n"
            '  tasksift query "what should I do today" --tasks tasks.json\n'
            '  tasksift query "p1 d:today" --tasks tasks.json --no-ai'
        ),
    )
    query.add_argument("text", nargs="+", help="The query text.")
    query.add_argument(
        "--tasks",
        required=True,
        metavar="PATH",
        help="JSON file with a list of tasks (or {\"tasks\": [...]}).",
    )
    query.add_argument(
        "-m",
        "--model",
        default=DEFAULT_MODEL,
        choices=MODELS.keys(),
        help="Model alias used to interpret the query.",
    )
    query.add_argument(
        "--no-ai",
        action="store_true",
        help="Parse with shorthand and glossary rules only.",
    )
    query.add_argument(
        "--limit",
        type=int,
        metavar="N",
        help="Show at most N tasks.",
    )
    query.add_argument(
        "--summarizer",
        action="store_true",
        help="Use the summarizer result cap instead of the direct-display cap.",
    )
    query.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON.",
    )

    glossary = subparsers.add_parser("glossary", help="Inspect or repair the status glossary.")
    glossary.add_argument(
        "action",
        choices=["check", "fix"],
        help="check: report sort position conflicts.\nfix: renumber them and save glossary.toml.",
    )
    return parser.parse_args(argv)


def run_query_command(args: argparse.Namespace) -> int:
    from dataclasses import replace

    from tasksift.cli import display
    from tasksift.search.corpus import load_tasks_json
    from tasksift.search.pipeline import run_query
    from tasksift.search.service import ChatCompletionService
    from tasksift.search.settings import load_search_settings

    settings = load_search_settings()
    if args.no_ai:
        settings = replace(settings, use_ai=False)
    corpus = load_tasks_json(args.tasks)
    service = ChatCompletionService.from_config(args.model) if settings.use_ai else None

    text = " ".join(args.text)
    with console.status("Searching tasks...", spinner="dots"):
        result = run_query(
            text,
            settings=settings,
            corpus=corpus,
            service=service,
            for_summarizer=args.summarizer,
        )

    if args.json:
        payload = display.result_to_dict(result, args.limit)
        print(json.dumps(payload, ensure_ascii=False, indent=2, default=display.json_default))
        return 0

    display.render_warnings(console, settings.config_warnings, "Configuration warnings")
    display.render_results(console, result, settings.glossary, args.limit)
    return 0


def run_glossary_command(args: argparse.Namespace) -> int:
    from tasksift.cli import display
    from tasksift.config.glossary_writer import write_status_orders
    from tasksift.search.glossary import RepairReport, validate_sort_positions
    from tasksift.search.settings import load_search_settings

    if args.action == "check":
        settings = load_search_settings()
        report = validate_sort_positions(settings.glossary)
        display.render_sort_positions(console, settings.glossary, report)
        if report.valid:
            console.print("[green]Glossary sort positions are valid.[/green]")
            return 0
        console.print("Run [bold]tasksift glossary fix[/bold] to renumber them.")
        return 1

    settings = load_search_settings(auto_repair=True)
    report = settings.repair_report
    if report is None or not report.changed:
        display.render_repair(console, report or RepairReport())
        return 0
    path = write_status_orders(report.changes)
    display.render_repair(console, report)
    console.print(f"Saved to {path}")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else LOG_LEVEL, LOG_FILE)
    logger.debug("tasksift command=%s", args.command)

    try:
        if args.command == "query":
            code = run_query_command(args)
        else:
            code = run_glossary_command(args)
    except ConfigValidationError as exc:
        from tasksift.cli.display import render_config_error

        render_config_error(console, exc)
        sys.exit(EXIT_CONFIG_ERROR)
    except TasksiftError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()

"""
AIQA - AI-assisted browser test execution engine
Main entry point for the application.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from aiqa import __version__
from aiqa.config.settings import Settings, get_settings
from aiqa.core.types import RunStatus, StepStatus, TestResult
from aiqa.execution.orchestrator import TestRunOrchestrator, load_test_plan
from aiqa.monitoring.logger import get_logger, setup_logging

console = Console()
logger = get_logger("aiqa.main")

STATUS_STYLES = {
    RunStatus.PASSED: "green",
    RunStatus.FAILED: "red",
    RunStatus.PARTIAL: "yellow",
    RunStatus.ERROR: "red",
    StepStatus.PASSED: "green",
    StepStatus.FAILED: "red",
    StepStatus.SKIPPED: "dim",
}


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="aiqa",
        description=f"AIQA - AI-assisted browser test execution v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run a step file headless
  aiqa test_plans/login.json

  # Watch the run in a visible Firefox window
  aiqa test_plans/login.json --headed --browser firefox

  # Keep going after failures, without the AI fallback
  aiqa test_plans/login.json --continue-on-failure --no-oracle
        """,
    )

    parser.add_argument(
        "plan",
        nargs="?",
        type=Path,
        help="Path to a JSON step list or test plan",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )

    # Browser options
    headless_group = parser.add_mutually_exclusive_group()
    headless_group.add_argument(
        "--headless",
        dest="headless",
        action="store_true",
        default=None,
        help="Run browser in headless mode",
    )
    headless_group.add_argument(
        "--headed",
        dest="headless",
        action="store_false",
        help="Run browser with a visible window",
    )
    parser.add_argument(
        "--browser",
        choices=["chromium", "firefox", "webkit"],
        help="Browser engine (default: from settings)",
    )

    # Execution options
    parser.add_argument(
        "--continue-on-failure",
        action="store_true",
        help="Keep executing after a required step fails",
    )
    parser.add_argument(
        "--no-oracle",
        action="store_true",
        help="Disable the AI element-matching fallback",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        help="Test run timeout in seconds",
    )

    # Output options
    parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Output directory for results JSON (default: logs/)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode with verbose logging",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose structured logging output (JSON)",
    )

    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return a settings copy with command line overrides applied."""
    updates = {}
    if args.debug:
        updates["log_level"] = "DEBUG"
    if args.verbose:
        updates["log_format"] = "json"
    if args.headless is not None:
        updates["browser_headless"] = args.headless
    if args.browser:
        updates["browser_type"] = args.browser
    if args.continue_on_failure:
        updates["continue_on_failure"] = True
    if args.no_oracle:
        updates["oracle_enabled"] = False
    if args.output:
        updates["results_dir"] = args.output
    return settings.model_copy(update=updates)


def print_summary(result: TestResult) -> None:
    """Print a step table and the verdict."""
    table = Table(title=f"Test Results: {result.name}")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Action", style="magenta")
    table.add_column("Description")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Strategy")
    table.add_column("Duration", justify="right")

    for step in result.steps:
        style = STATUS_STYLES.get(step.status, "white")
        strategy = step.resolution.strategy.value if step.resolution else "-"
        duration = f"{step.duration_ms}ms" if step.duration_ms is not None else "-"
        table.add_row(
            str(step.step_number),
            step.action,
            step.description,
            f"[{style}]{step.status.value}[/{style}]",
            str(step.attempts),
            strategy,
            duration,
        )

    console.print(table)

    style = STATUS_STYLES.get(result.status, "white")
    summary = (
        f"Status: [{style}]{result.status.value.upper()}[/{style}]\n"
        f"Passed: {result.passed_steps}/{result.total_steps}"
        f"  Failed: {result.failed_steps}  Skipped: {result.skipped_steps}\n"
        f"Duration: {result.duration_ms}ms"
    )
    if result.error:
        summary += f"\nError: {result.error}"
    if result.screenshots:
        summary += "\nScreenshots:\n" + "\n".join(f"  {s}" for s in result.screenshots)
    console.print(Panel(summary, title="Summary", border_style=style))


def show_version() -> int:
    """Show version information."""
    console.print(f"AIQA v{__version__}")
    return 0


async def async_main(args: Optional[list] = None) -> int:
    """Async main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.version:
        return show_version()

    if parsed_args.plan is None:
        parser.print_help()
        return 1

    settings = apply_overrides(get_settings(), parsed_args)
    setup_logging(settings)

    try:
        name, steps = load_test_plan(parsed_args.plan)
    except FileNotFoundError:
        console.print(f"[red]Test plan not found: {parsed_args.plan}[/red]")
        return 1
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Invalid test plan: {e}[/red]")
        return 1

    console.print(
        f"[bold]Running {len(steps)} step(s)[/bold] "
        f"from {parsed_args.plan} on {settings.browser_type}"
    )

    orchestrator = TestRunOrchestrator(settings=settings)
    result = await orchestrator.execute(
        steps,
        name=name or parsed_args.plan.stem,
        timeout_seconds=parsed_args.timeout,
    )

    print_summary(result)
    return 0 if result.status == RunStatus.PASSED else 1


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for AIQA.

    Args:
        args: Command line arguments

    Returns:
        Exit code (0 only when the run passed)
    """
    try:
        return asyncio.run(async_main(args))
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        return 130
    except Exception as e:
        console.print(f"[red]Fatal error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from cdprun.browser.actions import load_batch_file
from cdprun.browser.registry import DEFAULT_REGISTRY, ArgDirection
from cdprun.errors import CdpRunnerError
from cdprun.runner.capture import LoggingCapturer, MemoryRecorder, summarize
from cdprun.runner.engine import CDP_NEW_KEY, CDP_TIMEOUT_BY_STEP, CdpRunner

console = Console()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a batch of Chrome DevTools Protocol actions")
    parser.add_argument("--actions", help="JSON file holding the action batch")
    parser.add_argument("--name", default="cdp", help="Runner name used in logs")
    parser.add_argument("--root", help="Directory relative upload paths are resolved against")
    parser.add_argument("--remote", default=CDP_NEW_KEY, help="Browser connect mode")
    parser.add_argument("--timeout", type=float, default=CDP_TIMEOUT_BY_STEP, help="Batch timeout in seconds")
    parser.add_argument("--list-actions", action="store_true", help="List available actions and exit")
    args = parser.parse_args(argv)
    if not args.list_actions and not args.actions:
        parser.error("--actions is required")
    return args


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=verbose)],
    )


def _actions_table() -> Table:
    table = Table(title="CDP actions")
    table.add_column("Action")
    table.add_column("Args")
    table.add_column("Results")
    table.add_column("Description")
    for name, descriptor in DEFAULT_REGISTRY:
        inputs = [slot.key for slot in descriptor.slots if slot.direction is ArgDirection.INPUT]
        outputs = [slot.key for slot in descriptor.output_slots()]
        label = name if not descriptor.aliases else f"{name} ({', '.join(descriptor.aliases)})"
        table.add_row(label, ", ".join(inputs), ", ".join(outputs), descriptor.description)
    return table


async def _run(args: argparse.Namespace) -> dict[str, Any]:
    batch_path = Path(args.actions)
    batch = load_batch_file(batch_path)
    root = args.root or str(batch_path.resolve().parent)
    recorder = MemoryRecorder()

    runner = await CdpRunner.create(
        args.name,
        args.remote,
        capturers=[LoggingCapturer()],
        recorder=recorder,
        root=root,
        timeout=args.timeout,
    )
    async with runner:
        await runner.run(batch)
    return recorder.latest or {}


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    load_dotenv()
    verbose = os.getenv("VERBOSE", "0").lower() in {"1", "true", "yes", "on"}
    _configure_logging(verbose)

    if args.list_actions:
        console.print(_actions_table())
        return 0

    try:
        record = asyncio.run(_run(args))
    except (CdpRunnerError, OSError, ValueError) as exc:
        console.print(f"[bold red]FAILED[/bold red] {exc}")
        return 1

    console.print("[bold green]PASSED[/bold green]")
    console.print(summarize(record))
    return 0


if __name__ == "__main__":
    sys.exit(main())

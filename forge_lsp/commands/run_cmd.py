"""Run command - interactive runs of a Forge file in the terminal."""

from __future__ import annotations

import asyncio
from pathlib import Path

from rich.console import Console

from ..config import Settings
from ..diagnostics import CollectingSink, DiagnosticPublisher
from ..links import provide_terminal_links
from ..output import ConsoleNavigator, ConsoleOutputSink
from ..runner import ForgeRunner
from ..supervisor import ProcessSupervisor


async def run_forge_file(path: Path, settings: Settings, console: Console) -> int:
    """Run ``path`` until it exits; Ctrl+C stops it the way the editor's Stop button does."""
    path = path.resolve()
    publisher = DiagnosticPublisher(CollectingSink(), max_problems=settings.max_problems)
    output = ConsoleOutputSink(
        console,
        link_provider=lambda line: provide_terminal_links(line, path, settings.extension),
    )
    runner = ForgeRunner(
        ProcessSupervisor(),
        publisher,
        output,
        ConsoleNavigator(console),
        settings,
    )

    handle = runner.run_file(path)
    if handle is None:
        return 1

    try:
        await handle.wait()
    except asyncio.CancelledError:
        runner.stop()
        await handle.wait()
        raise

    if handle.process is None:
        return 2
    return 1 if publisher.diagnostics(path.as_uri()) else 0


def run_run(path: Path, settings: Settings) -> int:
    """
    Run a Forge file, relaying its output.

    Returns:
        Exit code (0 = finished, 1 = Forge reported an error, 2 = racket could not be started)
    """
    console = Console()
    try:
        return asyncio.run(run_forge_file(path, settings, console))
    except KeyboardInterrupt:
        console.print()
        console.print("[bold]Stopped.[/bold]")
        return 130

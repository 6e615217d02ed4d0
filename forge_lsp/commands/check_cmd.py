"""Check command implementation."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from lsprotocol import types as lsp
from rich.console import Console

from ..config import Settings
from ..diagnostics import SEVERITY_NAMES, CollectingSink, DiagnosticPublisher
from ..output import ConsoleOutputSink
from ..scratch import ScratchFiles
from ..supervisor import ProcessHandle, ProcessSupervisor
from ..validation import DocumentValidator

SEVERITY_STYLES = {"error": "bold red", "warning": "yellow", "info": "blue"}


def diagnostic_to_dict(path: Path, diagnostic: lsp.Diagnostic) -> dict:
    start = diagnostic.range.start
    end = diagnostic.range.end
    return {
        "path": str(path),
        "line": start.line + 1,
        "column": start.character + 1,
        "end_line": end.line + 1,
        "end_column": end.character + 1,
        "severity": SEVERITY_NAMES.get(diagnostic.severity, "warning"),
        "source": diagnostic.source,
        "code": diagnostic.code,
        "message": diagnostic.message,
        "location": (diagnostic.data or {}).get("location"),
    }


def _print_diagnostics(console: Console, path: Path, diagnostics: list[lsp.Diagnostic]) -> None:
    if not diagnostics:
        console.print(f"✓ {path}", style="green", highlight=False)
        return
    for diagnostic in diagnostics:
        entry = diagnostic_to_dict(path, diagnostic)
        style = SEVERITY_STYLES.get(entry["severity"], "yellow")
        console.print(
            f"[{style}]{entry['severity']}[/{style}] {path}:{entry['line']}:{entry['column']} "
            f"[dim]({entry['source']})[/dim]",
            highlight=False,
        )
        for line in diagnostic.message.splitlines():
            console.print(f"    {line}", highlight=False, markup=False)


class CheckSession:
    """A validator wired to console output, shared by one-shot and watch modes."""

    def __init__(self, settings: Settings, console: Console):
        self.settings = settings
        self.console = console
        self.sink = CollectingSink()
        self.supervisor = ProcessSupervisor()
        self.publisher = DiagnosticPublisher(self.sink, max_problems=settings.max_problems)
        self.validator = DocumentValidator(
            self.supervisor,
            self.publisher,
            ScratchFiles(settings.scratch_dir),
            settings,
            ConsoleOutputSink(console),
        )
        self.failed_to_start: set[Path] = set()

    def validate(self, path: Path) -> ProcessHandle | None:
        uri = path.resolve().as_uri()
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            self.console.print(f"Cannot read {path}: {e}", style="bold red", highlight=False)
            self.failed_to_start.add(path)
            return None
        self.failed_to_start.discard(path)
        return self.validator.validate(uri, text)

    async def settle(self, path: Path, handle: ProcessHandle | None) -> bool:
        """Wait for ``handle``; False if it was superseded or never ran."""
        if handle is None:
            return False
        await handle.wait()
        if handle.termination is not None:
            return False
        if handle.process is None:
            self.failed_to_start.add(path)
            return False
        return True

    def diagnostics(self, path: Path) -> list[lsp.Diagnostic]:
        return self.publisher.diagnostics(path.resolve().as_uri())

    def close(self) -> None:
        self.validator.shutdown()
        self.supervisor.shutdown()


async def check_files(
    paths: list[Path], settings: Settings, console: Console
) -> tuple[dict[Path, list[lsp.Diagnostic]], set[Path]]:
    """Validate ``paths`` concurrently; returns diagnostics per path and the paths that could not be checked."""
    session = CheckSession(settings, console)
    try:
        handles = [(path, session.validate(path)) for path in paths]
        await asyncio.gather(*(session.settle(path, handle) for path, handle in handles))
        return {path: session.diagnostics(path) for path in paths}, set(session.failed_to_start)
    finally:
        session.close()


def run_check(
    paths: list[Path],
    settings: Settings,
    *,
    output_json: bool = False,
) -> int:
    """Validate Forge files once.

    Returns:
        Exit code (0 = clean, 1 = diagnostics found, 2 = a file could not be checked)
    """
    console = Console(stderr=True)

    skipped = [p for p in paths if not settings.is_forge_file(p)]
    for path in skipped:
        console.print(f"Skipping {path}: not a .{settings.extension} file", style="dim", highlight=False)
    paths = [p for p in paths if settings.is_forge_file(p)]

    results, failed = asyncio.run(check_files(paths, settings, console))

    if output_json:
        output = {
            "files": [str(p) for p in paths],
            "diagnostics": [diagnostic_to_dict(p, d) for p in paths for d in results[p]],
            "unchecked": sorted(str(p) for p in failed),
        }
        print(json.dumps(output, indent=2, default=str))
    else:
        for path in paths:
            if path not in failed:
                _print_diagnostics(console, path, results[path])

    if failed:
        return 2
    return 1 if any(results.values()) else 0


async def _watch(paths: list[Path], settings: Settings, console: Console) -> None:
    from ..watcher import watch_files

    loop = asyncio.get_running_loop()
    session = CheckSession(settings, console)

    async def report(path: Path, handle: ProcessHandle | None) -> None:
        if await session.settle(path, handle):
            _print_diagnostics(console, path, session.diagnostics(path))

    def revalidate(path: Path) -> None:
        # A newer save supersedes the check still running for the same file.
        handle = session.validate(path)
        asyncio.ensure_future(report(path, handle))

    for path in paths:
        revalidate(path)

    observer, _ = watch_files(paths, loop, revalidate)
    try:
        await asyncio.Event().wait()
    finally:
        observer.stop()
        observer.join()
        session.close()


def run_check_watch(paths: list[Path], settings: Settings) -> None:
    """
    Validate Forge files on every save until interrupted.

    This is a blocking command that runs until interrupted (Ctrl+C).
    """
    console = Console(stderr=True)
    paths = [p.resolve() for p in paths if settings.is_forge_file(p)]
    if not paths:
        console.print(f"No .{settings.extension} files to watch", style="yellow")
        return

    console.print(f"[bold]Watching[/bold] {len(paths)} file(s)")
    console.print("[dim]Press Ctrl+C to stop watching[/dim]")
    console.print()

    try:
        asyncio.run(_watch(paths, settings, console))
    except KeyboardInterrupt:
        console.print()
        console.print("[bold]Stopped.[/bold]")

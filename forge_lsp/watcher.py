"""
File system watcher for ``forge-lsp check --watch``.

Watchdog delivers events on its own thread; the handler only forwards them to
the asyncio loop with ``call_soon_threadsafe`` and debounces there, so all
supervisor state stays on the loop thread.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable

from watchdog.events import (
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer


class ForgeFileHandler(FileSystemEventHandler):
    """
    Forwards saves of the watched files to the event loop.

    Key behaviors:
    - Only the explicitly watched files are relevant, not their siblings
    - Editors that save by writing a temp file and renaming it are covered
    - Rapid save cycles collapse into one callback per file
    """

    DEBOUNCE_SECONDS = 0.3

    def __init__(
        self,
        paths: set[Path],
        loop: asyncio.AbstractEventLoop,
        on_change: Callable[[Path], None],
    ):
        super().__init__()
        self.paths = paths
        self.loop = loop
        self.on_change = on_change
        # Loop-thread only.
        self._timers: dict[Path, asyncio.TimerHandle] = {}

    def _is_relevant(self, path: str) -> bool:
        return Path(path).resolve() in self.paths

    def _schedule(self, path: Path) -> None:
        timer = self._timers.pop(path, None)
        if timer is not None:
            timer.cancel()
        self._timers[path] = self.loop.call_later(self.DEBOUNCE_SECONDS, self._fire, path)

    def _fire(self, path: Path) -> None:
        self._timers.pop(path, None)
        self.on_change(path)

    def _forward(self, path: str) -> None:
        self.loop.call_soon_threadsafe(self._schedule, Path(path).resolve())

    def on_created(self, event: FileCreatedEvent) -> None:
        if not event.is_directory and self._is_relevant(event.src_path):
            self._forward(event.src_path)

    def on_modified(self, event: FileModifiedEvent) -> None:
        if not event.is_directory and self._is_relevant(event.src_path):
            self._forward(event.src_path)

    def on_moved(self, event: FileMovedEvent) -> None:
        if not event.is_directory and self._is_relevant(event.dest_path):
            self._forward(event.dest_path)


def watch_files(
    paths: list[Path],
    loop: asyncio.AbstractEventLoop,
    on_change: Callable[[Path], None],
) -> tuple[Observer, ForgeFileHandler]:
    """
    Start watching ``paths`` for saves.

    Args:
        paths: Files to watch (their directories are observed non-recursively)
        loop: Event loop that ``on_change`` runs on
        on_change: Called with the resolved path after a debounced save

    Returns:
        Tuple of (observer, handler) - caller should call observer.stop() to stop watching
    """
    resolved = {p.resolve() for p in paths}
    handler = ForgeFileHandler(resolved, loop, on_change)

    observer = Observer()
    for directory in sorted({p.parent for p in resolved}):
        observer.schedule(handler, str(directory), recursive=False)
    observer.start()

    return observer, handler

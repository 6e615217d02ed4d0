"""
Output sinks and navigators: the opaque UI surfaces the bridge talks to.

The core only ever appends a line, clears, shows, pops a short message, or
asks for a document to be opened at a position. The LSP flavour forwards
these to the editor, the console flavour renders them with rich.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Protocol

from rich.console import Console
from rich.text import Text

if TYPE_CHECKING:
    from pygls.lsp.server import LanguageServer

    from .links import TerminalLink

logger = logging.getLogger(__name__)

OUTPUT_NOTIFICATION = "forge/output"


class OutputSink(Protocol):
    def append_line(self, text: str) -> None: ...
    def clear(self) -> None: ...
    def show(self) -> None: ...
    def show_message(self, text: str) -> None: ...


class Navigator(Protocol):
    def open(self, path: Path, position: tuple[int, int] | None = None) -> None:
        """Open ``path``; place the cursor at the 0-indexed (line, character) if given."""
        ...


class LspOutputSink:
    """Forwards output to the editor's output channel via ``forge/output``."""

    def __init__(self, server: "LanguageServer"):
        self.server = server

    def _notify(self, action: str, text: str | None = None) -> None:
        params: dict[str, str] = {"action": action}
        if text is not None:
            params["text"] = text
        self.server.protocol.notify(OUTPUT_NOTIFICATION, params)

    def append_line(self, text: str) -> None:
        self._notify("append", text)

    def clear(self) -> None:
        self._notify("clear")

    def show(self) -> None:
        self._notify("show")

    def show_message(self, text: str) -> None:
        from lsprotocol import types as lsp

        self.server.window_show_message(lsp.ShowMessageParams(type=lsp.MessageType.Info, message=text))


class LspNavigator:
    """Opens documents through ``window/showDocument``."""

    def __init__(self, server: "LanguageServer"):
        self.server = server

    def open(self, path: Path, position: tuple[int, int] | None = None) -> None:
        from lsprotocol import types as lsp

        selection = None
        if position is not None:
            pos = lsp.Position(line=position[0], character=position[1])
            selection = lsp.Range(start=pos, end=pos)
        self.server.window_show_document(
            lsp.ShowDocumentParams(
                uri=path.resolve().as_uri(),
                take_focus=True,
                selection=selection,
            )
        )


class ConsoleOutputSink:
    """Renders output on a rich console, turning Forge locators into hyperlinks."""

    def __init__(
        self,
        console: Console | None = None,
        link_provider: Callable[[str], list["TerminalLink"]] | None = None,
    ):
        self.console = console or Console()
        self.link_provider = link_provider

    def append_line(self, text: str) -> None:
        rendered = Text(text)
        if self.link_provider:
            for link in self.link_provider(text):
                rendered.stylize(
                    f"underline link {link.target_uri()}",
                    link.start_index,
                    link.start_index + link.length,
                )
        self.console.print(rendered, highlight=False)

    def clear(self) -> None:
        # Keep the scrollback; a run boundary is enough.
        self.console.rule(style="dim")

    def show(self) -> None:
        pass

    def show_message(self, text: str) -> None:
        self.console.print(f"[yellow]{text}[/yellow]")


class ConsoleNavigator:
    """Prints where an editor would have jumped to."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self.opened: list[tuple[Path, tuple[int, int] | None]] = []

    def open(self, path: Path, position: tuple[int, int] | None = None) -> None:
        self.opened.append((path, position))
        if position is None:
            self.console.print(f"[dim]-> {path}[/dim]", highlight=False)
        else:
            self.console.print(f"[dim]-> {path}:{position[0] + 1}:{position[1] + 1}[/dim]", highlight=False)

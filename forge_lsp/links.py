"""
Terminal link resolution.

Turns ``file.frg:LINE:COL`` locators in terminal text into navigable links.
Only locators naming the active document are offered, so unrelated paths
that happen to appear in the terminal are not linked.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path, PureWindowsPath
from typing import Any

from .locator import DEFAULT_EXTENSION, match_primary
from .output import Navigator


@dataclass(frozen=True)
class TerminalLink:
    """A clickable range of a terminal line.

    ``line`` and ``column`` are 0-indexed editor positions.
    """

    start_index: int
    length: int
    tooltip: str
    path: str
    line: int | None = None
    column: int | None = None

    def target_uri(self) -> str:
        uri = Path(self.path).resolve().as_uri()
        if self.line is not None:
            uri += f"#L{self.line + 1}"
            if self.column is not None:
                uri += f",{self.column + 1}"
        return uri

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TerminalLink:
        return cls(
            start_index=int(data.get("start_index", data.get("startIndex", 0))),
            length=int(data.get("length", 0)),
            tooltip=str(data.get("tooltip", "")),
            path=str(data.get("path", data.get("filePath", ""))),
            line=data.get("line"),
            column=data.get("column"),
        )


def _basename(path: str) -> str:
    # Terminal text and editor paths may use either separator.
    return PureWindowsPath(path).name


def provide_terminal_links(
    line: str,
    active_path: str | Path | None,
    extension: str = DEFAULT_EXTENSION,
) -> list[TerminalLink]:
    """Return at most one link for ``line``, pointing into the active document."""
    if active_path is None:
        return []
    match = match_primary(line, extension)
    if match is None or match.span is None:
        return []

    active = str(active_path)
    if match.filename != _basename(active):
        return []

    line_idx = match.line - 1
    col_idx = max(match.column - 1, 0)
    start, end = match.span
    return [
        TerminalLink(
            start_index=start,
            length=end - start,
            tooltip=f"{active}:{match.line}:{match.column}",
            path=active,
            line=line_idx,
            column=col_idx,
        )
    ]


def handle_terminal_link(link: TerminalLink, navigator: Navigator) -> None:
    """Open the link target, at the cursor position when the link has one."""
    if link.line is not None and link.column is not None:
        navigator.open(Path(link.path), (link.line, link.column))
    else:
        navigator.open(Path(link.path), None)

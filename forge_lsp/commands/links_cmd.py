"""Links command - resolve Forge locators in terminal text."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TextIO

from ..config import Settings
from ..links import provide_terminal_links


def resolve_links(stream: TextIO, active_path: Path, settings: Settings) -> list[dict]:
    """Resolve links line by line; each entry carries its 1-indexed terminal line."""
    resolved = []
    for number, line in enumerate(stream, start=1):
        for link in provide_terminal_links(line.rstrip("\n"), active_path, settings.extension):
            resolved.append({"terminal_line": number, **link.to_dict()})
    return resolved


def run_links(stream: TextIO, active_path: Path, settings: Settings) -> int:
    """Print the links found in ``stream`` as JSON; exit code 1 if there were none."""
    links = resolve_links(stream, active_path, settings)
    print(json.dumps(links, indent=2, default=str))
    return 0 if links else 1

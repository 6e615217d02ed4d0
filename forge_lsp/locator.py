"""
Location extraction from free-form toolchain error text.

Racket has no machine-readable diagnostics, so the locator tries an ordered
chain of regular grammars against stderr and stops at the first match:

- primary: ``path/to/file.frg:LINE:COL:`` (filename, line, column)
- keyed:   ``line=N`` ... ``column=N`` (read-syntax failures)
- terse:   ``anything:LINE:COL:`` (nested syntax-checking passes)

All patterns report line and column exactly as the tool prints them, which is
1-indexed for both. Converting to 0-indexed offsets is the job of
``forge_lsp.offsets``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable

DEFAULT_EXTENSION = "frg"

# Printed by the Sterling visualizer when a run finishes; the editor exposes
# a Stop command instead of reading stdin.
STERLING_BANNER = "Sterling running. Hit enter to stop service."
STERLING_BANNER_REPLACEMENT = "Sterling running. Hit Stop to stop service."

KEYED_LINE_PATTERN = re.compile(r"line=(\d+)")
KEYED_COLUMN_PATTERN = re.compile(r"column=(\d+)")
TERSE_PATTERN = re.compile(r"[^\s:]*:(\d+):(\d+):")


@dataclass(frozen=True)
class LocationMatch:
    """A locator found in tool output.

    ``line`` and ``column`` are 1-indexed. ``span`` is the (start, end) of the
    locator inside the text it was found in, when the pattern has one.
    """

    line: int
    column: int
    filename: str | None = None
    span: tuple[int, int] | None = None
    pattern: str = "primary"


Extractor = Callable[[str], "LocationMatch | None"]


@dataclass(frozen=True)
class LocationPattern:
    """One entry of the grammar chain."""

    name: str
    extract: Extractor


def primary_pattern(extension: str = DEFAULT_EXTENSION) -> re.Pattern[str]:
    """Regex for ``<path>.<ext>:<line>:<col>:?``; filenames may not contain whitespace."""
    ext = re.escape(extension.lstrip("."))
    return re.compile(rf"[\\/]*?([^\\/\n\s]*\.{ext}):(\d+):(\d+):?")


def match_primary(line: str, extension: str = DEFAULT_EXTENSION) -> LocationMatch | None:
    """Match the primary locator on a single line of text."""
    m = primary_pattern(extension).search(line)
    if m is None:
        return None
    return LocationMatch(
        line=int(m.group(2)),
        column=int(m.group(3)),
        filename=m.group(1),
        span=(m.start(), m.end()),
        pattern="primary",
    )


def first_primary_match(lines: Iterable[str], extension: str = DEFAULT_EXTENSION) -> LocationMatch | None:
    """Return the primary match of the first line that has one.

    Scanning stops at the first hit: later lines may quote source fragments
    that happen to look like locators.
    """
    for line in lines:
        match = match_primary(line, extension)
        if match is not None:
            return match
    return None


def match_keyed(text: str) -> LocationMatch | None:
    """Match ``line=N`` / ``column=N`` fields anywhere in the text."""
    line_m = KEYED_LINE_PATTERN.search(text)
    column_m = KEYED_COLUMN_PATTERN.search(text)
    if line_m is None or column_m is None:
        return None
    return LocationMatch(
        line=int(line_m.group(1)),
        column=int(column_m.group(1)),
        pattern="keyed",
    )


def match_terse(text: str) -> LocationMatch | None:
    """Match a bare ``<anything>:<line>:<col>:`` locator."""
    m = TERSE_PATTERN.search(text)
    if m is None:
        return None
    return LocationMatch(
        line=int(m.group(1)),
        column=int(m.group(2)),
        span=(m.start(), m.end()),
        pattern="terse",
    )


def location_patterns(extension: str = DEFAULT_EXTENSION) -> tuple[LocationPattern, ...]:
    """The grammar chain, in resolution order."""
    return (
        LocationPattern("primary", lambda text: first_primary_match(text.splitlines(), extension)),
        LocationPattern("keyed", match_keyed),
        LocationPattern("terse", match_terse),
    )


def locate(
    text: str,
    extension: str = DEFAULT_EXTENSION,
    patterns: Iterable[LocationPattern] | None = None,
) -> LocationMatch | None:
    """Run the grammar chain over ``text`` and return the first location found."""
    for pattern in patterns if patterns is not None else location_patterns(extension):
        match = pattern.extract(text)
        if match is not None:
            return match
    return None


def rewrite_runner_output(line: str) -> str:
    """Replace the Sterling stdin prompt with wording that matches the editor."""
    if STERLING_BANNER in line:
        return line.replace(STERLING_BANNER, STERLING_BANNER_REPLACEMENT)
    return line


def locate_for(text: str, filename: str, extension: str = DEFAULT_EXTENSION) -> LocationMatch | None:
    """Like :func:`locate`, but a locator naming a different file counts as no location."""
    match = locate(text, extension)
    if match is not None and match.filename and match.filename != filename:
        return None
    return match

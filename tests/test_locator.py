"""Tests for location extraction from toolchain output."""

from __future__ import annotations

from forge_lsp.locator import (
    LocationMatch,
    LocationPattern,
    first_primary_match,
    locate,
    locate_for,
    match_keyed,
    match_primary,
    match_terse,
    rewrite_runner_output,
)


# -----------------------------------------------------------------------------
# Primary pattern
# -----------------------------------------------------------------------------


def test_primary_strips_leading_path() -> None:
    m = match_primary("/home/u/proj/foo.frg:4:9: unbound identifier")
    assert m is not None
    assert (m.filename, m.line, m.column) == ("foo.frg", 4, 9)
    assert m.pattern == "primary"


def test_primary_windows_separators() -> None:
    m = match_primary(r"C:\Users\u\foo.frg:12:1: oops")
    assert m is not None
    assert m.filename == "foo.frg"
    assert (m.line, m.column) == (12, 1)


def test_primary_span_covers_locator() -> None:
    line = "error at foo.frg:4:9: bad"
    m = match_primary(line)
    assert m is not None and m.span is not None
    assert line[m.span[0] : m.span[1]] == "foo.frg:4:9:"


def test_primary_trailing_colon_optional() -> None:
    m = match_primary("foo.frg:3:2")
    assert m is not None
    assert (m.line, m.column) == (3, 2)


def test_primary_ignores_other_extensions() -> None:
    assert match_primary("foo.rkt:3:2: nope") is None


def test_primary_custom_extension() -> None:
    m = match_primary("model.als:3:2: nope", "als")
    assert m is not None
    assert m.filename == "model.als"


def test_first_primary_match_uses_first_matching_line() -> None:
    lines = [
        "some preamble",
        "a.frg:1:2: first",
        "b.frg:3:4: second",
    ]
    m = first_primary_match(lines)
    assert m is not None
    assert (m.filename, m.line, m.column) == ("a.frg", 1, 2)


def test_first_primary_match_none() -> None:
    assert first_primary_match(["nothing", "here"]) is None


# -----------------------------------------------------------------------------
# Fallback patterns
# -----------------------------------------------------------------------------


def test_keyed_requires_both_fields() -> None:
    m = match_keyed("read-syntax: bad token line=7 column=2 position=80")
    assert m == LocationMatch(line=7, column=2, pattern="keyed")
    assert match_keyed("line=7 only") is None


def test_terse_without_extension() -> None:
    m = match_terse("#<syntax:12:5: expected expression")
    assert m is not None
    assert (m.line, m.column) == (12, 5)
    assert m.filename is None


# -----------------------------------------------------------------------------
# Chain
# -----------------------------------------------------------------------------


def test_locate_prefers_primary() -> None:
    text = "line=1 column=1\nfoo.frg:4:9: unbound"
    m = locate(text)
    assert m is not None
    assert m.pattern == "primary"
    assert (m.line, m.column) == (4, 9)


def test_locate_falls_back_to_keyed() -> None:
    m = locate("parse error at line=7 column=2")
    assert m is not None
    assert (m.line, m.column, m.filename, m.pattern) == (7, 2, None, "keyed")


def test_locate_falls_back_to_terse() -> None:
    m = locate("tmp:3:4: something broke")
    assert m is not None
    assert m.pattern == "terse"


def test_locate_nothing() -> None:
    assert locate("racket: out of memory") is None
    assert locate("") is None


def test_locate_custom_chain() -> None:
    always = LocationPattern("always", lambda text: LocationMatch(line=1, column=1, pattern="always"))
    m = locate("foo.frg:4:9:", patterns=[always])
    assert m is not None
    assert m.pattern == "always"


def test_locate_for_rejects_other_file() -> None:
    assert locate_for("other.frg:1:1: boom", "model.frg") is None
    m = locate_for("/x/model.frg:1:1: boom", "model.frg")
    assert m is not None
    assert m.filename == "model.frg"


def test_locate_for_keeps_unnamed_matches() -> None:
    m = locate_for("line=2 column=3", "model.frg")
    assert m is not None
    assert m.filename is None


# -----------------------------------------------------------------------------
# Runner output
# -----------------------------------------------------------------------------


def test_sterling_banner_rewritten() -> None:
    line = "Sterling running. Hit enter to stop service."
    assert rewrite_runner_output(line) == "Sterling running. Hit Stop to stop service."


def test_other_output_unchanged() -> None:
    assert rewrite_runner_output("#vars: 12") == "#vars: 12"

"""Tests for diagnostic building and publishing."""

from __future__ import annotations

from lsprotocol import types as lsp

from forge_lsp.diagnostics import (
    CollectingSink,
    CombinedSink,
    DiagnosticPublisher,
    build_diagnostic,
    diagnostic_range,
)
from forge_lsp.locator import LocationMatch

URI = "file:///proj/model.frg"
TEXT = "#lang forge\n\nsig Node {}\npred bad { some x }\n"


def _located(line: int, column: int) -> LocationMatch:
    return LocationMatch(line=line, column=column, filename="model.frg")


# -----------------------------------------------------------------------------
# Building
# -----------------------------------------------------------------------------


def test_range_from_location() -> None:
    rng = diagnostic_range(TEXT, _located(4, 6))
    assert (rng.start.line, rng.start.character) == (3, 5)
    assert (rng.end.line, rng.end.character) == (3, 19)


def test_unresolved_is_anchored_at_document_start() -> None:
    d = build_diagnostic(URI, TEXT, None, "boom\nmore detail")
    assert (d.range.start.line, d.range.start.character) == (0, 0)
    assert (d.range.end.line, d.range.end.character) == (0, 0)
    assert d.message == "boom\nmore detail"
    assert d.data == {"location": "unresolved"}


def test_prefix_severity_and_source() -> None:
    d = build_diagnostic(
        URI,
        TEXT,
        _located(3, 1),
        "unbound identifier",
        severity="error",
        source="Forge Syntax",
        prefix="Forge syntax error: ",
        code="syntax_error",
    )
    assert d.message == "Forge syntax error: unbound identifier"
    assert d.severity == lsp.DiagnosticSeverity.Error
    assert d.source == "Forge Syntax"
    assert d.code == "syntax_error"
    assert d.data == {"location": "primary"}
    assert d.related_information is None


def test_related_information_repeats_raw_message() -> None:
    d = build_diagnostic(URI, TEXT, _located(3, 1), "raw", prefix="P: ", related_information=True)
    assert d.related_information is not None
    (info,) = d.related_information
    assert info.message == "raw"
    assert info.location.uri == URI
    assert info.location.range == d.range


# -----------------------------------------------------------------------------
# Publishing
# -----------------------------------------------------------------------------


def test_publish_replaces_previous_set() -> None:
    sink = CollectingSink()
    publisher = DiagnosticPublisher(sink)

    publisher.publish(URI, TEXT, _located(3, 1), "first")
    publisher.publish(URI, TEXT, _located(4, 1), "second")

    assert [d.message for d in publisher.diagnostics(URI)] == ["second"]
    assert [d.message for d in sink.published[URI]] == ["second"]


def test_publish_is_idempotent() -> None:
    sink = CollectingSink()
    publisher = DiagnosticPublisher(sink)

    publisher.publish(URI, TEXT, _located(3, 1), "same")
    once = publisher.diagnostics(URI)
    publisher.publish(URI, TEXT, _located(3, 1), "same")

    assert publisher.diagnostics(URI) == once
    assert len(sink.published[URI]) == 1


def test_clear() -> None:
    sink = CollectingSink()
    publisher = DiagnosticPublisher(sink)
    publisher.publish(URI, TEXT, None, "boom")

    publisher.clear(URI)

    assert publisher.diagnostics(URI) == []
    assert URI not in sink.published


def test_replace_caps_problem_count() -> None:
    publisher = DiagnosticPublisher(CollectingSink(), max_problems=2)
    diagnostics = [build_diagnostic(URI, TEXT, None, str(i)) for i in range(5)]
    assert len(publisher.replace(URI, diagnostics)) == 2


def test_publish_uses_related_information_setting() -> None:
    publisher = DiagnosticPublisher(CollectingSink(), related_information=True)
    d = publisher.publish(URI, TEXT, None, "boom")
    assert d.related_information is not None


# -----------------------------------------------------------------------------
# Combined collections
# -----------------------------------------------------------------------------


def test_combined_sink_publishes_union() -> None:
    target = CollectingSink()
    combined = CombinedSink(target)
    check = DiagnosticPublisher(combined.collection("check"))
    run = DiagnosticPublisher(combined.collection("eval"))

    check.publish(URI, TEXT, None, "check problem")
    run.publish(URI, TEXT, None, "run problem")
    assert sorted(d.message for d in target.published[URI]) == ["check problem", "run problem"]

    run.clear(URI)
    assert [d.message for d in target.published[URI]] == ["check problem"]

    check.clear(URI)
    assert URI not in target.published

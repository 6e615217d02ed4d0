"""
Convert located toolchain errors into LSP diagnostics and publish them.

Publishing replaces the whole diagnostic set of a document. A failure whose
location could not be extracted is still published, anchored at the start of
the document with the full raw message, so nothing is silently dropped.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from lsprotocol import types as lsp

from .locator import LocationMatch
from .offsets import NO_LOCATION, offset_range, position_at

if TYPE_CHECKING:
    from pygls.lsp.server import LanguageServer

logger = logging.getLogger(__name__)

SEVERITIES = {
    "error": lsp.DiagnosticSeverity.Error,
    "warning": lsp.DiagnosticSeverity.Warning,
    "info": lsp.DiagnosticSeverity.Information,
}

SEVERITY_NAMES = {value: key for key, value in SEVERITIES.items()}


class DiagnosticsSink(Protocol):
    def set(self, uri: str, diagnostics: list[lsp.Diagnostic]) -> None:
        """Replace the diagnostics of ``uri``; an empty list clears them."""
        ...


class LspDiagnosticsSink:
    """Publishes through ``textDocument/publishDiagnostics``."""

    def __init__(self, server: "LanguageServer"):
        self.server = server

    def set(self, uri: str, diagnostics: list[lsp.Diagnostic]) -> None:
        self.server.text_document_publish_diagnostics(
            lsp.PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
        )


class CollectingSink:
    """Keeps the last published set per document (CLI rendering)."""

    def __init__(self) -> None:
        self.published: dict[str, list[lsp.Diagnostic]] = {}

    def set(self, uri: str, diagnostics: list[lsp.Diagnostic]) -> None:
        if diagnostics:
            self.published[uri] = list(diagnostics)
        else:
            self.published.pop(uri, None)


def diagnostic_range(text: str, located: LocationMatch | None) -> lsp.Range:
    """LSP range for a location in ``text``; document start when unlocated."""
    span = offset_range(text, located.line, located.column) if located else NO_LOCATION
    start_line, start_char = position_at(text, span.start)
    end_line, end_char = position_at(text, span.end)
    return lsp.Range(
        start=lsp.Position(line=start_line, character=start_char),
        end=lsp.Position(line=end_line, character=end_char),
    )


def build_diagnostic(
    uri: str,
    text: str,
    located: LocationMatch | None,
    raw_message: str,
    *,
    severity: str = "warning",
    source: str = "Racket REPL",
    prefix: str = "",
    code: str | None = None,
    related_information: bool = False,
) -> lsp.Diagnostic:
    """Build one diagnostic for ``raw_message`` found at ``located``."""
    rng = diagnostic_range(text, located)
    related = None
    if related_information:
        related = [
            lsp.DiagnosticRelatedInformation(
                location=lsp.Location(uri=uri, range=rng),
                message=raw_message,
            )
        ]

    return lsp.Diagnostic(
        range=rng,
        message=f"{prefix}{raw_message}",
        severity=SEVERITIES.get(severity, lsp.DiagnosticSeverity.Warning),
        source=source,
        code=code,
        related_information=related,
        data={"location": located.pattern if located else "unresolved"},
    )


class DiagnosticPublisher:
    """Replace-semantics diagnostic store in front of a sink."""

    def __init__(
        self,
        sink: DiagnosticsSink,
        *,
        related_information: bool = False,
        max_problems: int = 1000,
    ):
        self.sink = sink
        self.related_information = related_information
        self.max_problems = max_problems
        self._current: dict[str, list[lsp.Diagnostic]] = {}

    def diagnostics(self, uri: str) -> list[lsp.Diagnostic]:
        return list(self._current.get(uri, []))

    def clear(self, uri: str) -> None:
        """Drop all diagnostics of ``uri``, synchronously."""
        self._current.pop(uri, None)
        self.sink.set(uri, [])

    def replace(self, uri: str, diagnostics: list[lsp.Diagnostic]) -> list[lsp.Diagnostic]:
        """Publish ``diagnostics`` as the complete set for ``uri``."""
        diagnostics = list(diagnostics[: self.max_problems])
        if diagnostics:
            self._current[uri] = diagnostics
        else:
            self._current.pop(uri, None)
        self.sink.set(uri, list(diagnostics))
        return diagnostics

    def publish(
        self,
        uri: str,
        text: str,
        located: LocationMatch | None,
        raw_message: str,
        severity: str = "warning",
        *,
        source: str = "Racket REPL",
        prefix: str = "",
        code: str | None = None,
    ) -> lsp.Diagnostic:
        """Publish a single located error as the document's diagnostic set."""
        if located is None:
            logger.debug(f"No location in tool output for {uri}; anchoring at document start")
        diagnostic = build_diagnostic(
            uri,
            text,
            located,
            raw_message,
            severity=severity,
            source=source,
            prefix=prefix,
            code=code,
            related_information=self.related_information,
        )
        self.replace(uri, [diagnostic])
        return diagnostic


class _CollectionSink:
    def __init__(self, owner: "CombinedSink", name: str):
        self.owner = owner
        self.name = name

    def set(self, uri: str, diagnostics: list[lsp.Diagnostic]) -> None:
        self.owner.update(self.name, uri, diagnostics)


class CombinedSink:
    """Publishes the union of several named collections through one sink.

    LSP has a single diagnostic set per document, while validation results and
    interactive-run errors are replaced independently of each other.
    """

    def __init__(self, sink: DiagnosticsSink):
        self.sink = sink
        self._collections: dict[str, dict[str, list[lsp.Diagnostic]]] = {}

    def collection(self, name: str) -> DiagnosticsSink:
        self._collections.setdefault(name, {})
        return _CollectionSink(self, name)

    def update(self, name: str, uri: str, diagnostics: list[lsp.Diagnostic]) -> None:
        per_uri = self._collections.setdefault(name, {})
        if diagnostics:
            per_uri[uri] = list(diagnostics)
        else:
            per_uri.pop(uri, None)
        union = [d for collection in self._collections.values() for d in collection.get(uri, [])]
        self.sink.set(uri, union)

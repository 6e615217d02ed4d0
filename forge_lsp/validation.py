"""
One-shot validation of Forge documents.

Every open/change/save produces a ValidationRequest carrying a per-document
sequence token. The request's text is written to a scratch file and checked
by Racket in the document's own supervisor slot. When the checker exits, its
stderr is run through the locator and published, but only if no newer
request for the same document was issued in the meantime.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from lsprotocol import types as lsp

from .config import Settings
from .diagnostics import DiagnosticPublisher, build_diagnostic
from .errors import ProcessSpawnError, ScratchFileError
from .locator import locate_for
from .output import OutputSink
from .scratch import ScratchFiles, uri_to_path
from .supervisor import ExitKind, ProcessHandle, ProcessSupervisor, classify_exit

logger = logging.getLogger(__name__)

REPL_SOURCE = "Racket REPL"
SYNTAX_SOURCE = "Forge Syntax"
EVALUATION_PREFIX = "Racket evaluation error: "
SYNTAX_PREFIX = "Forge syntax error: "


@dataclass(frozen=True)
class ValidationRequest:
    """A full-text validation of one document version."""

    uri: str
    text: str
    sequence: int


def diagnostics_for_output(
    request: ValidationRequest,
    stderr: str,
    exit_code: int | None,
    settings: Settings,
    *,
    related_information: bool = False,
) -> list[lsp.Diagnostic]:
    """Interpret the checker's stderr and exit status for ``request``.

    Empty stderr with a clean exit means no problems. Anything on stderr is
    a diagnostic, located if possible; a syntax-error exit marks it as coming
    from the syntax checker.
    """
    kind = classify_exit(exit_code, settings.syntax_error_exit_code)

    if not stderr.strip():
        if kind is ExitKind.CLEAN:
            return []
        return [
            build_diagnostic(
                request.uri,
                request.text,
                None,
                f"Racket exited with code {exit_code}",
                severity="error",
                source=REPL_SOURCE,
                code=kind.value,
                related_information=related_information,
            )
        ]

    located = locate_for(stderr, uri_to_path(request.uri).name, settings.extension)
    if kind is ExitKind.SYNTAX_ERROR:
        severity, source, prefix = "error", SYNTAX_SOURCE, SYNTAX_PREFIX
    else:
        severity, source, prefix = "warning", REPL_SOURCE, EVALUATION_PREFIX

    return [
        build_diagnostic(
            request.uri,
            request.text,
            located,
            stderr.strip(),
            severity=severity,
            source=source,
            prefix=prefix,
            code=kind.value,
            related_information=related_information,
        )
    ]


class DocumentValidator:
    """Runs the checker per document and publishes fresh results only."""

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        publisher: DiagnosticPublisher,
        scratch: ScratchFiles,
        settings: Settings,
        output: OutputSink | None = None,
    ):
        self.supervisor = supervisor
        self.publisher = publisher
        self.scratch = scratch
        self.settings = settings
        self.output = output
        self._sequence: dict[str, int] = {}

    @staticmethod
    def slot(uri: str) -> tuple[str, str]:
        return ("validate", uri)

    def latest(self, uri: str) -> int:
        return self._sequence.get(uri, 0)

    def validate(self, uri: str, text: str) -> ProcessHandle | None:
        """Start validating ``text``; returns the checker handle, if one started."""
        request = ValidationRequest(uri=uri, text=text, sequence=self.latest(uri) + 1)
        self._sequence[uri] = request.sequence

        # Stale results must not outlive the edit that invalidated them.
        self.publisher.clear(uri)

        try:
            path = self.scratch.write(uri, text)
        except ScratchFileError as e:
            logger.error(f"Validation of {uri} aborted: {e.message}")
            self.supervisor.kill(self.slot(uri))
            if self.output:
                self.output.append_line(e.message)
            return None

        stderr: list[str] = []
        return self.supervisor.spawn(
            self.slot(uri),
            self.settings.checker_argv(path),
            on_stderr=stderr.append,
            on_exit=lambda code: self._finish(request, "".join(stderr), code),
            on_spawn_error=self._spawn_failed,
            owner=request,
            cwd=path.parent,
        )

    def _spawn_failed(self, error: ProcessSpawnError) -> None:
        if self.output:
            self.output.append_line(error.message)

    def _finish(self, request: ValidationRequest, stderr: str, exit_code: int) -> None:
        if request.sequence != self.latest(request.uri):
            logger.debug(f"Dropping superseded validation #{request.sequence} of {request.uri}")
            return

        diagnostics = diagnostics_for_output(
            request,
            stderr,
            exit_code,
            self.settings,
            related_information=self.publisher.related_information,
        )
        self.publisher.replace(request.uri, diagnostics)

    def close(self, uri: str) -> None:
        """Forget a closed document: stop its checker, clear, delete scratch copy."""
        self._sequence.pop(uri, None)
        self.supervisor.kill(self.slot(uri))
        self.publisher.clear(uri)
        try:
            self.scratch.delete(uri)
        except ScratchFileError as e:
            logger.error(e.message)

    def shutdown(self) -> None:
        for uri in list(self._sequence):
            self.supervisor.kill(self.slot(uri))
            try:
                self.scratch.delete(uri)
            except ScratchFileError as e:
                logger.error(e.message)

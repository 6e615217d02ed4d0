"""
LSP server implementation for Forge files.

Provides:
- Diagnostics from validating every document version with Racket
- forge.runFile / forge.stopRun commands for interactive runs
- forge.terminalLinks / forge.openLink for jumping from terminal text
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from .. import __version__
from ..config import SECTION, Settings
from ..diagnostics import CombinedSink, DiagnosticPublisher, LspDiagnosticsSink
from ..errors import ConfigError
from ..links import TerminalLink, handle_terminal_link, provide_terminal_links
from ..output import LspNavigator, LspOutputSink
from ..runner import NOT_A_FORGE_FILE, ForgeRunner
from ..scratch import ScratchFiles, uri_to_path
from ..supervisor import ProcessSupervisor
from ..validation import DocumentValidator

logger = logging.getLogger(__name__)

CMD_RUN_FILE = "forge.runFile"
CMD_STOP_RUN = "forge.stopRun"
CMD_TERMINAL_LINKS = "forge.terminalLinks"
CMD_OPEN_LINK = "forge.openLink"


class ForgeLanguageServer(LanguageServer):
    """Language server bridging editors to the Forge/Racket toolchain."""

    def __init__(self, settings: Settings | None = None):
        super().__init__(
            name="forge-lsp",
            version=__version__,
            text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
        )
        self.settings = settings or Settings()
        self.supervisor = ProcessSupervisor()
        self.output = LspOutputSink(self)
        self.navigator = LspNavigator(self)

        combined = CombinedSink(LspDiagnosticsSink(self))
        self.check_diagnostics = DiagnosticPublisher(
            combined.collection("check"), max_problems=self.settings.max_problems
        )
        self.eval_diagnostics = DiagnosticPublisher(
            combined.collection("eval"), max_problems=self.settings.max_problems
        )

        self.validator = DocumentValidator(
            self.supervisor,
            self.check_diagnostics,
            ScratchFiles(self.settings.scratch_dir),
            self.settings,
            self.output,
        )
        self.runner = ForgeRunner(
            self.supervisor,
            self.eval_diagnostics,
            self.output,
            self.navigator,
            self.settings,
            read_text=self.document_text,
        )

    def apply_settings(self, settings: Settings) -> None:
        """Swap in new settings for every component."""
        self.settings = settings
        self.validator.settings = settings
        self.validator.scratch = ScratchFiles(settings.scratch_dir)
        self.runner.settings = settings
        for publisher in (self.check_diagnostics, self.eval_diagnostics):
            publisher.max_problems = settings.max_problems

    def update_settings(self, data: dict[str, Any] | None) -> bool:
        """Merge editor settings; returns False (and keeps the old ones) if invalid."""
        try:
            self.apply_settings(self.settings.merge(data))
        except ConfigError as e:
            logger.warning(e.message)
            self.output.show_message(e.message)
            return False
        return True

    def document_text(self, path: Path, uri: str | None = None) -> str:
        """Text of the document as the editor has it, falling back to disk.

        The buffer is looked up by the client's own ``uri`` first; clients
        differ in how they encode file URIs (``file:///c%3A/...``).
        """
        documents = self.workspace.text_documents
        for key in (uri, path.resolve().as_uri()):
            if key and key in documents:
                return documents[key].source
        return path.read_text(encoding="utf-8")

    def is_forge_uri(self, uri: str) -> bool:
        return self.settings.is_forge_file(uri_to_path(uri))

    def validate(self, uri: str) -> None:
        if not self.is_forge_uri(uri):
            return
        document = self.workspace.get_text_document(uri)
        self.validator.validate(uri, document.source)

    def revalidate_all(self) -> None:
        for uri in list(self.workspace.text_documents):
            self.validate(uri)


def _arguments(args: tuple) -> list[Any]:
    """Normalise executeCommand arguments to a flat list."""
    if len(args) == 1 and isinstance(args[0], list):
        return args[0]
    return list(args)


def _settings_section(data: Any) -> dict[str, Any] | None:
    if not isinstance(data, dict):
        return None
    section = data.get(SECTION)
    return section if isinstance(section, dict) else data


def create_server(settings: Settings | None = None) -> ForgeLanguageServer:
    """Create and configure the LSP server."""
    server = ForgeLanguageServer(settings)

    @server.feature(lsp.INITIALIZE)
    def initialize(params: lsp.InitializeParams) -> None:
        """Handle initialize - read client capabilities and initial settings."""
        text_document = params.capabilities.text_document
        publish = text_document.publish_diagnostics if text_document else None
        related = bool(publish and publish.related_information)
        server.check_diagnostics.related_information = related
        server.eval_diagnostics.related_information = related

        server.update_settings(_settings_section(params.initialization_options))

    @server.feature(lsp.WORKSPACE_DID_CHANGE_CONFIGURATION)
    def did_change_configuration(params: lsp.DidChangeConfigurationParams) -> None:
        """Handle settings change - revalidate all open documents."""
        if server.update_settings(_settings_section(params.settings)):
            server.revalidate_all()

    @server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
    def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
        """Handle document open - run initial validation."""
        server.validate(params.text_document.uri)

    @server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
    def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
        """Handle document change - drop run errors, revalidate the new text."""
        uri = params.text_document.uri
        server.eval_diagnostics.clear(uri)
        server.validate(uri)

    @server.feature(lsp.TEXT_DOCUMENT_DID_SAVE)
    def did_save(params: lsp.DidSaveTextDocumentParams) -> None:
        """Handle document save - revalidate."""
        server.validate(params.text_document.uri)

    @server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
    def did_close(params: lsp.DidCloseTextDocumentParams) -> None:
        """Handle document close - stop its checker and clear everything."""
        uri = params.text_document.uri
        server.eval_diagnostics.clear(uri)
        server.validator.close(uri)

    @server.feature(lsp.SHUTDOWN)
    def shutdown(params: None) -> None:
        """Handle shutdown - kill every external process."""
        server.validator.shutdown()
        server.supervisor.shutdown()

    @server.command(CMD_RUN_FILE)
    def run_file(*args: Any) -> dict[str, Any]:
        """Run a Forge file; argument: the document uri."""
        arguments = _arguments(args)
        if not arguments or not isinstance(arguments[0], str):
            server.output.show_message(NOT_A_FORGE_FILE)
            return {"started": False}
        uri = arguments[0]
        handle = server.runner.run_file(uri_to_path(uri), uri)
        return {"started": handle is not None}

    @server.command(CMD_STOP_RUN)
    def stop_run(*args: Any) -> dict[str, Any]:
        """Stop the interactive run, if any."""
        return {"stopped": server.runner.stop() is not None}

    @server.command(CMD_TERMINAL_LINKS)
    def terminal_links(*args: Any) -> list[dict[str, Any]]:
        """Resolve links in a terminal line; arguments: line, active document uri."""
        arguments = _arguments(args)
        if len(arguments) < 2 or not isinstance(arguments[0], str) or not arguments[1]:
            return []
        active_path = uri_to_path(str(arguments[1]))
        links = provide_terminal_links(arguments[0], active_path, server.settings.extension)
        return [link.to_dict() for link in links]

    @server.command(CMD_OPEN_LINK)
    def open_link(*args: Any) -> None:
        """Navigate to a link returned by forge.terminalLinks."""
        arguments = _arguments(args)
        if not arguments or not isinstance(arguments[0], dict):
            return
        handle_terminal_link(TerminalLink.from_dict(arguments[0]), server.navigator)

    return server


def configure_logging(log_file: Path | None = None, level: str = "INFO") -> None:
    """Route logs to a file or stderr; stdout carries the LSP stream."""
    handler: logging.Handler
    if log_file is not None:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()  # stderr
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())


def start_server(
    settings: Settings | None = None,
    transport: str = "stdio",
    host: str = "localhost",
    port: int = 2087,
) -> None:
    """Start the LSP server.

    Args:
        settings: Initial settings (editor settings are merged on initialize)
        transport: Transport method ("stdio" or "tcp")
        host: Host for the TCP transport
        port: Port for the TCP transport
    """
    server = create_server(settings)

    if transport == "stdio":
        server.start_io()
    else:
        # TCP transport for debugging
        server.start_tcp(host, port)

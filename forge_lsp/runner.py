"""
Interactive runs of Forge files.

There is a single global run slot: starting a run stops the previous one.
stdout is relayed to the output sink line by line while the program runs;
stderr is collected and, once the process exits, published as an evaluation
error before jumping to it. Only a primary locator naming the run file places
the error; anything else, such as a library's ``.rkt`` location, is published
at the top of the document.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from .config import Settings
from .diagnostics import DiagnosticPublisher
from .errors import ProcessSpawnError
from .locator import first_primary_match, rewrite_runner_output
from .offsets import offset_range, position_at
from .output import Navigator, OutputSink
from .supervisor import ProcessHandle, ProcessSupervisor

logger = logging.getLogger(__name__)

RUN_SLOT = "run"
EVAL_SOURCE = "Racket"
EVAL_PREFIX = "Forge Evaluation Error: "
NOT_A_FORGE_FILE = "Click on the Forge file first before hitting the run button :)"


class LineBuffer:
    """Splits a chunked text stream into complete lines."""

    def __init__(self) -> None:
        self._partial = ""

    def feed(self, chunk: str) -> list[str]:
        *lines, self._partial = (self._partial + chunk).split("\n")
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> list[str]:
        rest, self._partial = self._partial, ""
        return [rest.rstrip("\r")] if rest else []


def _read_from_disk(path: Path, uri: str) -> str:
    return path.read_text(encoding="utf-8")


class ForgeRunner:
    """Owns the interactive run slot."""

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        publisher: DiagnosticPublisher,
        output: OutputSink,
        navigator: Navigator,
        settings: Settings,
        read_text: Callable[[Path, str], str] = _read_from_disk,
    ):
        self.supervisor = supervisor
        self.publisher = publisher
        self.output = output
        self.navigator = navigator
        self.settings = settings
        self.read_text = read_text

    @property
    def running(self) -> bool:
        return self.supervisor.live_handle(RUN_SLOT) is not None

    def run_file(self, path: Path, uri: str | None = None) -> ProcessHandle | None:
        """Run ``path`` in the global slot, replacing any run in progress."""
        if not self.settings.is_forge_file(path):
            logger.info(f"Cannot run file {path}")
            self.output.show_message(NOT_A_FORGE_FILE)
            return None

        uri = uri or path.resolve().as_uri()
        self._stop_current()

        self.output.clear()
        self.output.show()

        stdout = LineBuffer()
        stderr: list[str] = []

        def on_stdout(chunk: str) -> None:
            for line in stdout.feed(chunk):
                self.output.append_line(rewrite_runner_output(line))

        def on_exit(code: int) -> None:
            for line in stdout.flush():
                self.output.append_line(rewrite_runner_output(line))
            self._finished(path, uri, "".join(stderr), code)

        handle = self.supervisor.spawn(
            RUN_SLOT,
            self.settings.run_argv(path),
            on_stdout=on_stdout,
            on_stderr=stderr.append,
            on_exit=on_exit,
            on_spawn_error=self._spawn_failed,
            owner=path,
            cwd=path.parent,
            keep_stdin=True,
        )
        self.output.append_line(f'Running file "{path}" ...')
        return handle

    def stop(self) -> ProcessHandle | None:
        """Stop the current run on user request.

        A stopped run is not a failed run: no diagnostics are produced, the
        document is simply brought back to the front.
        """
        handle = self._stop_current()
        if handle is not None:
            self.navigator.open(Path(handle.owner), None)
        return handle

    def _stop_current(self) -> ProcessHandle | None:
        handle = self.supervisor.kill(RUN_SLOT)
        if handle is not None:
            self.output.append_line("Terminating the current Forge process ...")
        return handle

    def _spawn_failed(self, error: ProcessSpawnError) -> None:
        self.output.append_line(error.message)

    def _document_text(self, path: Path, uri: str) -> str:
        try:
            return self.read_text(path, uri)
        except OSError as e:
            logger.warning(f"Cannot read {path} to place the error: {e}")
            return ""

    def _finished(self, path: Path, uri: str, stderr: str, code: int) -> None:
        logger.debug(f"Run of {path} exited with code {code}")
        if not stderr.strip():
            self.navigator.open(path, None)
            self.output.append_line("Finished running.")
            return

        self.output.append_line(stderr.rstrip("\n"))

        text = self._document_text(path, uri)
        located = first_primary_match(stderr.splitlines(), self.settings.extension)
        if located is not None and located.filename != path.name:
            located = None

        self.publisher.publish(
            uri,
            text,
            located,
            stderr.strip(),
            "error",
            source=EVAL_SOURCE,
            prefix=EVAL_PREFIX,
        )

        if located is not None:
            start = offset_range(text, located.line, located.column).start
            self.navigator.open(path, position_at(text, start))
        else:
            self.navigator.open(path, None)
        self.output.append_line("Forge exited.")

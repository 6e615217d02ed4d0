"""
Supervision of external toolchain processes.

Every process runs in a *slot*: one per open document for validation, plus a
single global slot for interactive runs. A slot owns at most one live
process. Spawning into an occupied slot kills the previous process first,
and any output the old process produces afterwards is dropped: callbacks
check, by identity, that their handle is still the live one for the slot
before doing anything.

Process I/O happens on the asyncio event loop. The three event channels of a
process (stdout, stderr, exit) are composed into one task per handle which
resolves after exit has fired and all output has been delivered.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Hashable

from .errors import ProcessSpawnError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096

OutputCallback = Callable[[str], None]
ExitCallback = Callable[[int], None]
SpawnErrorCallback = Callable[[ProcessSpawnError], None]


class ExitKind(str, Enum):
    """How a finished checker run should be interpreted."""

    CLEAN = "clean"
    TOOL_ERROR = "tool_error"
    SYNTAX_ERROR = "syntax_error"


class Termination(str, Enum):
    """Why a handle stopped being live before its process exited."""

    SUPERSEDED = "superseded"
    USER_CANCELLED = "user_cancelled"


def classify_exit(code: int | None, syntax_error_code: int | None) -> ExitKind:
    """Classify an exit status; ``syntax_error_code`` is the reserved sentinel."""
    if code == 0:
        return ExitKind.CLEAN
    if syntax_error_code is not None and code == syntax_error_code:
        return ExitKind.SYNTAX_ERROR
    return ExitKind.TOOL_ERROR


@dataclass(eq=False)
class ProcessHandle:
    """One generation of an external process in a slot."""

    slot: Hashable
    argv: list[str]
    owner: Any = None
    process: asyncio.subprocess.Process | None = None
    live: bool = True
    termination: Termination | None = None
    returncode: int | None = None
    task: asyncio.Task | None = field(default=None, repr=False)

    async def wait(self) -> int | None:
        """Wait until the process has exited and its output was delivered."""
        if self.task is None:
            return self.returncode
        return await self.task

    def _signal_kill(self) -> None:
        if self.process is None or self.process.returncode is not None:
            return
        try:
            self.process.kill()
        except ProcessLookupError:
            # Exited between the returncode check and the signal.
            pass


class ProcessSupervisor:
    """Owns the live process handle of each slot."""

    def __init__(self) -> None:
        self._live: dict[Hashable, ProcessHandle] = {}

    def live_handle(self, slot: Hashable) -> ProcessHandle | None:
        return self._live.get(slot)

    def is_live(self, handle: ProcessHandle) -> bool:
        return self._live.get(handle.slot) is handle

    @property
    def slots(self) -> list[Hashable]:
        return list(self._live)

    def spawn(
        self,
        slot: Hashable,
        argv: list[str],
        *,
        on_stdout: OutputCallback | None = None,
        on_stderr: OutputCallback | None = None,
        on_exit: ExitCallback | None = None,
        on_spawn_error: SpawnErrorCallback | None = None,
        owner: Any = None,
        cwd: Path | str | None = None,
        keep_stdin: bool = False,
    ) -> ProcessHandle:
        """Start ``argv`` in ``slot``, superseding whatever was running there.

        The previous handle is killed and marked non-live before the new one
        is registered, so its pending callbacks become no-ops. With
        ``keep_stdin`` the child gets a pipe that is never written to, so a
        program waiting for input blocks until it is killed instead of
        reading EOF.
        """
        self._terminate(slot, Termination.SUPERSEDED)

        handle = ProcessHandle(slot=slot, argv=list(argv), owner=owner)
        self._live[slot] = handle
        handle.task = asyncio.ensure_future(
            self._run(handle, on_stdout, on_stderr, on_exit, on_spawn_error, cwd, keep_stdin)
        )
        return handle

    def kill(self, slot: Hashable) -> ProcessHandle | None:
        """Stop the live process of ``slot`` on request of the user or the editor.

        Returns the killed handle, or None if nothing was running. No callback
        of the killed handle fires afterwards.
        """
        return self._terminate(slot, Termination.USER_CANCELLED)

    def shutdown(self) -> None:
        """Kill every live process."""
        for slot in list(self._live):
            self._terminate(slot, Termination.USER_CANCELLED)

    def _terminate(self, slot: Hashable, reason: Termination) -> ProcessHandle | None:
        handle = self._live.pop(slot, None)
        if handle is None:
            return None
        handle.live = False
        handle.termination = reason
        handle._signal_kill()
        logger.debug(f"Terminated process in slot {slot!r} ({reason.value})")
        return handle

    async def _run(
        self,
        handle: ProcessHandle,
        on_stdout: OutputCallback | None,
        on_stderr: OutputCallback | None,
        on_exit: ExitCallback | None,
        on_spawn_error: SpawnErrorCallback | None,
        cwd: Path | str | None,
        keep_stdin: bool = False,
    ) -> int | None:
        try:
            process = await asyncio.create_subprocess_exec(
                *handle.argv,
                stdin=asyncio.subprocess.PIPE if keep_stdin else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
            )
        except (OSError, ValueError) as e:
            error = ProcessSpawnError(handle.argv, str(e))
            logger.warning(error.message)
            if self.is_live(handle):
                del self._live[handle.slot]
                handle.live = False
                if on_spawn_error:
                    on_spawn_error(error)
            return None

        handle.process = process
        if not handle.live:
            # Superseded or cancelled while the process was starting.
            handle._signal_kill()
            handle.returncode = await process.wait()
            return handle.returncode

        await asyncio.gather(
            self._pump(handle, process.stdout, on_stdout),
            self._pump(handle, process.stderr, on_stderr),
        )
        handle.returncode = await process.wait()

        if not self.is_live(handle):
            logger.debug(f"Ignoring exit of stale process in slot {handle.slot!r}")
            return handle.returncode

        # Release the slot before the callback so that a spawn or kill issued
        # from inside it cannot target this handle again.
        del self._live[handle.slot]
        handle.live = False
        if on_exit:
            on_exit(handle.returncode)
        return handle.returncode

    async def _pump(
        self,
        handle: ProcessHandle,
        stream: asyncio.StreamReader | None,
        callback: OutputCallback | None,
    ) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            text = decoder.decode(chunk, final=not chunk)
            if text and callback and self.is_live(handle):
                callback(text)
            if not chunk:
                return

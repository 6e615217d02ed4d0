"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import Callable

import pytest

from forge_lsp.config import Settings
from forge_lsp.diagnostics import CollectingSink, DiagnosticPublisher


class FakeOutput:
    """Records everything written to an output sink."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.messages: list[str] = []
        self.cleared = 0
        self.shown = 0

    def append_line(self, text: str) -> None:
        self.lines.append(text)

    def clear(self) -> None:
        self.cleared += 1
        self.lines.clear()

    def show(self) -> None:
        self.shown += 1

    def show_message(self, text: str) -> None:
        self.messages.append(text)


class FakeNavigator:
    """Records navigation requests."""

    def __init__(self) -> None:
        self.opened: list[tuple[Path, tuple[int, int] | None]] = []

    def open(self, path: Path, position: tuple[int, int] | None = None) -> None:
        self.opened.append((path, position))


@pytest.fixture
def output() -> FakeOutput:
    return FakeOutput()


@pytest.fixture
def navigator() -> FakeNavigator:
    return FakeNavigator()


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def publisher(sink: CollectingSink) -> DiagnosticPublisher:
    return DiagnosticPublisher(sink)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings that keep scratch files inside the test's tmp dir."""
    return Settings(scratch_dir=tmp_path / "scratch")


@pytest.fixture
def scripted_tool(tmp_path: Path, settings: Settings) -> Callable[[str], Settings]:
    """Factory: settings whose "racket" is a Python script.

    The script receives the Forge file path as ``sys.argv[1]`` both when
    checking and when running.
    """
    counter = iter(range(1000))

    def make(code: str) -> Settings:
        script = tmp_path / f"tool_{next(counter)}.py"
        script.write_text(textwrap.dedent(code), encoding="utf-8")
        return settings.merge(
            {
                "racketPath": sys.executable,
                "checkerArgs": [str(script), "{path}"],
                "runArgs": [str(script), "{path}"],
            }
        )

    return make


@pytest.fixture
def forge_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Factory: write a Forge source file into a project dir."""

    def make(text: str, name: str = "model.frg") -> Path:
        project = tmp_path / "project"
        project.mkdir(exist_ok=True)
        path = project / name
        path.write_text(text, encoding="utf-8")
        return path

    return make

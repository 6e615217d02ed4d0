"""
Settings for the Forge language server and CLI.

Values are consumed, never produced, here: defaults are overridden by a TOML
file, then by LSP initialization options and ``workspace/didChangeConfiguration``
(section ``forgeLanguageServer``), then by CLI flags.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePath
from typing import Any

from .errors import ConfigError

logger = logging.getLogger(__name__)

SECTION = "forgeLanguageServer"
CONFIG_FILENAME = "forge-lsp.toml"

DEFAULT_CHECKER_ARGS = ("-l", "racket/base", "-l", "racket/enter", "-e", '(enter! (file "{path}"))')
DEFAULT_RUN_ARGS = ("{path}",)
DEFAULT_SYNTAX_ERROR_EXIT_CODE = 2

# camelCase editor keys -> dataclass fields
_KEYS = {
    "racketPath": "racket_path",
    "extension": "extension",
    "syntaxErrorExitCode": "syntax_error_exit_code",
    "checkerArgs": "checker_args",
    "runArgs": "run_args",
    "scratchDir": "scratch_dir",
    "maxNumberOfProblems": "max_problems",
}


def _default_scratch_dir() -> Path:
    return Path(tempfile.gettempdir()) / "forge-language-server"


@dataclass(frozen=True)
class Settings:
    """Resolved configuration."""

    racket_path: str = "racket"
    extension: str = "frg"
    syntax_error_exit_code: int | None = DEFAULT_SYNTAX_ERROR_EXIT_CODE
    checker_args: tuple[str, ...] = DEFAULT_CHECKER_ARGS
    run_args: tuple[str, ...] = DEFAULT_RUN_ARGS
    scratch_dir: Path = field(default_factory=_default_scratch_dir)
    max_problems: int = 1000

    def checker_argv(self, path: PurePath) -> list[str]:
        """Command line that validates the scratch copy at ``path``.

        The path is substituted with forward slashes, which Racket accepts on
        Windows too. Inside an s-expression argument it also lands in a Racket
        string literal, so backslashes and quotes are escaped there.
        """
        posix = path.as_posix()
        literal = posix.replace("\\", "\\\\").replace('"', '\\"')
        return [
            self.racket_path,
            *(arg.replace("{path}", literal if arg.lstrip().startswith("(") else posix) for arg in self.checker_args),
        ]

    def run_argv(self, path: Path) -> list[str]:
        """Command line for an interactive run of ``path``."""
        return [self.racket_path, *(arg.replace("{path}", str(path)) for arg in self.run_args)]

    def is_forge_file(self, path: Path | str) -> bool:
        return Path(path).suffix == f".{self.extension}"

    def merge(self, data: dict[str, Any] | None) -> Settings:
        """Return a copy with values from an editor settings dict applied.

        Accepts both the camelCase editor keys and the snake_case field names;
        unknown keys are ignored, ``None`` values keep the current setting.
        """
        if not data:
            return self

        changes: dict[str, Any] = {}
        for key, value in data.items():
            name = _KEYS.get(key, key)
            if name not in _KEYS.values() or value is None:
                continue
            changes[name] = _coerce(name, value)
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Editor-facing representation (camelCase keys)."""
        values = {
            "racket_path": self.racket_path,
            "extension": self.extension,
            "syntax_error_exit_code": self.syntax_error_exit_code,
            "checker_args": list(self.checker_args),
            "run_args": list(self.run_args),
            "scratch_dir": str(self.scratch_dir),
            "max_problems": self.max_problems,
        }
        return {key: values[name] for key, name in _KEYS.items()}


def _coerce(name: str, value: Any) -> Any:
    if name in ("racket_path", "extension"):
        text = str(value).strip()
        if not text:
            raise ConfigError(name, "must not be empty")
        return text.lstrip(".") if name == "extension" else text

    if name in ("checker_args", "run_args"):
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise ConfigError(name, "must be a list of strings")
        return tuple(str(v) for v in value)

    if name == "scratch_dir":
        return Path(str(value)).expanduser()

    if name == "syntax_error_exit_code":
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(name, f"expected an integer exit code, got {value!r}")

    if name == "max_problems":
        try:
            count = int(value)
        except (TypeError, ValueError):
            raise ConfigError(name, f"expected an integer, got {value!r}")
        if count < 1:
            raise ConfigError(name, "must be at least 1")
        return count

    return value


def load_settings(path: Path | None = None, base: Settings | None = None) -> Settings:
    """
    Load settings from a TOML file.

    The file may hold the keys at top level or under a ``[forgeLanguageServer]``
    table. A missing default file is not an error; a missing explicit file is.
    """
    import tomllib

    settings = base or Settings()
    if path is None:
        path = Path.cwd() / CONFIG_FILENAME
        if not path.is_file():
            return settings
    elif not path.is_file():
        raise ConfigError("config", f"file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError("config", f"cannot read {path}: {e}")

    section = data.get(SECTION)
    if isinstance(section, dict):
        data = section
    logger.debug(f"Loaded settings from {path}")
    return settings.merge(data)

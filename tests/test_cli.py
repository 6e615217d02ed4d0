"""Tests for the forge-lsp command line."""

from __future__ import annotations

import json
import sys
from pathlib import Path

from click.testing import CliRunner

from forge_lsp import __version__
from forge_lsp.cli import cli
from forge_lsp.commands.check_cmd import run_check

CHECKER = """
import sys
from pathlib import Path

path = Path(sys.argv[1])
if "oops" in path.read_text(encoding="utf-8"):
    sys.stderr.write(f"{path}:2:1: oops: unbound identifier\\n")
    sys.exit(1)
"""


def _config(tmp_path: Path) -> Path:
    script = tmp_path / "checker.py"
    script.write_text(CHECKER, encoding="utf-8")
    config = tmp_path / "forge-lsp.toml"
    config.write_text(
        "[forgeLanguageServer]\n"
        f"racketPath = '{sys.executable}'\n"
        f"checkerArgs = ['{script}', '{{path}}']\n"
        f"runArgs = ['{script}', '{{path}}']\n"
        f"scratchDir = '{tmp_path / 'scratch'}'\n",
        encoding="utf-8",
    )
    return config


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_missing_config_file(tmp_path: Path, forge_file) -> None:
    path = forge_file("sig A {}\n")
    result = CliRunner().invoke(cli, ["--config", str(tmp_path / "nope.toml"), "check", str(path)])
    assert result.exit_code != 0
    assert "file not found" in result.output


def test_check_clean_file(tmp_path: Path, forge_file) -> None:
    path = forge_file("#lang forge\nsig A {}\n")
    result = CliRunner().invoke(cli, ["--config", str(_config(tmp_path)), "check", str(path)])
    assert result.exit_code == 0


def test_check_reports_problems(tmp_path: Path, forge_file) -> None:
    path = forge_file("#lang forge\noops\n")
    result = CliRunner().invoke(cli, ["--config", str(_config(tmp_path)), "check", str(path)])
    assert result.exit_code == 1


def test_check_json_output(tmp_path: Path, forge_file, scripted_tool, capsys) -> None:
    path = forge_file("#lang forge\noops\n")
    settings = scripted_tool(CHECKER)

    exit_code = run_check([path], settings, output_json=True)

    assert exit_code == 1
    output = json.loads(capsys.readouterr().out)
    (entry,) = output["diagnostics"]
    assert entry["path"] == str(path)
    assert (entry["line"], entry["column"]) == (2, 1)
    assert entry["severity"] == "warning"
    assert entry["location"] == "primary"
    assert "unbound identifier" in entry["message"]
    assert output["unchecked"] == []


def test_check_missing_racket(forge_file, settings, capsys) -> None:
    path = forge_file("sig A {}\n")
    broken = settings.merge({"racketPath": "/nonexistent/racket"})
    assert run_check([path], broken, output_json=True) == 2
    output = json.loads(capsys.readouterr().out)
    assert output["unchecked"] == [str(path)]


def test_check_skips_other_files(tmp_path: Path, settings, capsys) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("hello", encoding="utf-8")
    assert run_check([notes], settings, output_json=True) == 0
    assert json.loads(capsys.readouterr().out)["files"] == []


def test_check_rejects_json_with_watch(tmp_path: Path, forge_file) -> None:
    path = forge_file("sig A {}\n")
    result = CliRunner().invoke(cli, ["--config", str(_config(tmp_path)), "check", "--json", "--watch", str(path)])
    assert result.exit_code == 2


def test_run_command(tmp_path: Path, forge_file) -> None:
    path = forge_file("#lang forge\noops\n")
    result = CliRunner().invoke(cli, ["--config", str(_config(tmp_path)), "run", str(path)])
    assert result.exit_code == 1
    assert "Forge exited." in result.output


def test_links_command(tmp_path: Path) -> None:
    text = "Running...\n/tmp/model.frg:3:4: bad\n"
    result = CliRunner().invoke(cli, ["--config", str(tmp_path / "absent.toml"), "links", "model.frg"], input=text)
    # An explicit but missing config file is an error.
    assert result.exit_code != 0

    result = CliRunner().invoke(cli, ["links", "model.frg"], input=text)
    assert result.exit_code == 0
    (link,) = json.loads(result.output)
    assert link["terminal_line"] == 2
    assert (link["line"], link["column"]) == (2, 3)

"""CLI entrypoint for forge-lsp."""

import sys
from pathlib import Path

import click

from . import __version__
from .config import Settings, load_settings
from .errors import ConfigError


def _settings(ctx: click.Context, racket: str | None = None) -> Settings:
    settings: Settings = ctx.obj["settings"]
    if racket:
        try:
            settings = settings.merge({"racketPath": racket})
        except ConfigError as e:
            raise click.BadParameter(e.message, param_hint="--racket")
    return settings


@click.group()
@click.version_option(__version__, prog_name="forge-lsp")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="Path to a TOML settings file (defaults to ./forge-lsp.toml if present)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """forge-lsp - Editor diagnostics for Forge, backed by Racket.

    Serve the language server, or check and run Forge files from the terminal.
    """
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = load_settings(config_path)
    except ConfigError as e:
        raise click.ClickException(e.message)


# -----------------------------------------------------------------------------
# LSP server command
# -----------------------------------------------------------------------------


@cli.command("serve")
@click.option(
    "--transport",
    type=click.Choice(["stdio", "tcp"]),
    default="stdio",
    show_default=True,
    help="Transport method (stdio for editors, tcp for debugging)",
)
@click.option("--host", default="localhost", show_default=True, help="Host for the TCP transport")
@click.option("--port", type=int, default=2087, show_default=True, help="Port for the TCP transport")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write logs to this file instead of stderr",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
@click.pass_context
def serve(
    ctx: click.Context,
    transport: str,
    host: str,
    port: int,
    log_file: Path | None,
    log_level: str,
) -> None:
    """Start the LSP server.

    The LSP server provides:

    \b
    - Diagnostics from Racket on every edit
    - forge.runFile / forge.stopRun commands
    - forge.terminalLinks / forge.openLink for terminal locators

    For VSCode, configure the extension to use:

        forge-lsp serve --transport stdio

    For debugging with a TCP connection:

        forge-lsp serve --transport tcp --port 2087
    """
    from .lsp import configure_logging, start_server

    configure_logging(log_file, log_level)
    start_server(ctx.obj["settings"], transport=transport, host=host, port=port)


# -----------------------------------------------------------------------------
# Terminal commands
# -----------------------------------------------------------------------------


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--racket", type=str, default=None, help="Racket executable (overrides racketPath)")
@click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output diagnostics as JSON",
)
@click.option(
    "--watch",
    is_flag=True,
    help="Re-check on every save until interrupted",
)
@click.pass_context
def check(
    ctx: click.Context,
    files: tuple[Path, ...],
    racket: str | None,
    output_json: bool,
    watch: bool,
) -> None:
    """Check Forge files the same way the editor does.

    Exit code is 1 if any file has diagnostics.

    Examples:

        forge-lsp check model.frg

        forge-lsp check --json *.frg

        forge-lsp check --watch model.frg
    """
    settings = _settings(ctx, racket)

    if watch:
        if output_json:
            raise click.UsageError("--json cannot be combined with --watch")
        from .commands.check_cmd import run_check_watch

        run_check_watch(list(files), settings)
        return

    from .commands.check_cmd import run_check

    exit_code = run_check(list(files), settings, output_json=output_json)
    sys.exit(exit_code)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--racket", type=str, default=None, help="Racket executable (overrides racketPath)")
@click.pass_context
def run(ctx: click.Context, file: Path, racket: str | None) -> None:
    """Run a Forge file, relaying its output.

    Error locators in the output are rendered as links. Press Ctrl+C to stop
    the run (e.g. while Sterling is serving).
    """
    from .commands.run_cmd import run_run

    exit_code = run_run(file, _settings(ctx, racket))
    sys.exit(exit_code)


@cli.command()
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def links(ctx: click.Context, file: Path) -> None:
    """Resolve locators for FILE in terminal text read from stdin.

    Examples:

        racket model.frg 2>&1 | forge-lsp links model.frg
    """
    from .commands.links_cmd import run_links

    exit_code = run_links(click.get_text_stream("stdin"), file, ctx.obj["settings"])
    sys.exit(exit_code)


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()

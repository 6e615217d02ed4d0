"""
LSP server for Forge.

This module provides:
- LSP server for VSCode and other LSP clients
- Diagnostics from the Racket toolchain on every edit
- Run/stop commands with output relayed to the editor
- Terminal link resolution for Forge error locators
"""

from .server import ForgeLanguageServer, configure_logging, create_server, start_server

__all__ = ["ForgeLanguageServer", "configure_logging", "create_server", "start_server"]

"""Command implementations behind the forge-lsp CLI."""

"""forge-lsp - diagnostics bridge between editors and the Forge/Racket toolchain."""

__version__ = "0.1.0"

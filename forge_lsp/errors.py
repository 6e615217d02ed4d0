"""
forge-lsp error hierarchy.

External-tool failures are recovered where they happen and turned into
diagnostics or output-sink messages; these exceptions only cross module
boundaries between the glue layers (config, scratch files, process spawn).
"""


class ForgeLspError(Exception):
    """Base exception for all forge-lsp errors."""

    def __init__(self, message: str, code: str = "FORGE_LSP_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ConfigError(ForgeLspError):
    """Raised when a setting has an unusable value."""

    def __init__(self, key: str, detail: str):
        super().__init__(f"Invalid setting '{key}': {detail}", "CONFIG_INVALID")
        self.key = key


class ScratchFileError(ForgeLspError):
    """Raised when the scratch copy of a document cannot be written or removed."""

    def __init__(self, path: str, detail: str):
        super().__init__(f"Scratch file {path}: {detail}", "SCRATCH_FILE")
        self.path = path


class ProcessSpawnError(ForgeLspError):
    """Raised when the external tool binary cannot be launched."""

    def __init__(self, argv: list[str], detail: str):
        program = argv[0] if argv else "<empty command>"
        super().__init__(f"Cannot start {program}: {detail}", "PROCESS_SPAWN")
        self.argv = list(argv)


# exceptions.py

from typing import List, Optional


class HookRunnerError(Exception):
    """Base exception for all hookrunner errors."""


class ConfigError(HookRunnerError):
    """The main config or a hook file could not be loaded."""


class TemplateCompileError(HookRunnerError):
    """A template source has invalid syntax or uses an unknown function."""

    def __init__(self, source: str, message: str):
        super().__init__(f"Invalid template {source!r}: {message}")
        self.source = source


class TemplateRenderError(HookRunnerError):
    """A template could not be rendered against the event data."""


class CommandError(HookRunnerError):
    """Base for failures that abort a command sequence."""

    def __init__(self, message: str, args: List[str]):
        super().__init__(message)
        self.command = args


class ExecutableNotFoundError(CommandError):
    def __init__(self, args: List[str], reason: str = "not found in PATH"):
        super().__init__(f"Executable {args[0]} {reason}", args)


class CommandTimeoutError(CommandError):
    def __init__(self, args: List[str], timeout: float):
        super().__init__(f"Command {args} timed out after {timeout}s", args)
        self.timeout = timeout


class CommandFailedError(CommandError):
    def __init__(self, args: List[str], returncode: Optional[int] = None, reason: Optional[str] = None):
        if reason is None:
            reason = f"exited with status {returncode}"
        super().__init__(f"Command {args} {reason}", args)
        self.returncode = returncode

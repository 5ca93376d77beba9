"""Custom exceptions for nwizard.

Exception Hierarchy:
    NwizardError (base)
        ├── ExecutionError
        │   ├── CommandAlreadyRunningError
        │   └── SpawnError
        ├── AuthenticationError
        ├── PersistenceError
        └── ConfigError
            ├── MenuConfigNotFoundError
            └── InvalidMenuConfigError

Only SpawnError and the startup AuthenticationError abort what the caller was
doing. I/O failures on a running child's pipes are never raised; they show up
as a closed stream and an exit code. Out-of-range menu indices are clamped.

Usage:
    from nwizard.exceptions import CommandAlreadyRunningError

    try:
        runner.start(command)
    except CommandAlreadyRunningError:
        ...
"""

from __future__ import annotations

from pathlib import Path


class NwizardError(Exception):
    """Base exception for all nwizard errors."""


class ExecutionError(NwizardError):
    """Base exception for child process execution errors."""


class CommandAlreadyRunningError(ExecutionError):
    """A command was started while the previous one is still running."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"A command is already running; refusing to start: {command}")


class SpawnError(ExecutionError):
    """The child process could not be created. The command never started."""

    def __init__(self, command: str, original_error: Exception | None = None):
        self.command = command
        self.original_error = original_error
        msg = f"Failed to start command: {command}"
        if original_error:
            msg += f" ({original_error})"
        super().__init__(msg)


class AuthenticationError(NwizardError):
    """Initial privilege authentication failed or was declined."""

    def __init__(self, reason: str = ""):
        self.reason = reason
        msg = "Privilege authentication failed"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PersistenceError(NwizardError):
    """Writing persisted selections to disk failed."""

    def __init__(self, path: Path, original_error: Exception | None = None):
        self.path = path
        self.original_error = original_error
        msg = f"Failed to save selections to {path}"
        if original_error:
            msg += f": {original_error}"
        super().__init__(msg)


class ConfigError(NwizardError):
    """Base exception for menu configuration errors."""


class MenuConfigNotFoundError(ConfigError):
    """The menu configuration file does not exist."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Menu configuration not found: {path}")


class InvalidMenuConfigError(ConfigError):
    """The menu configuration could not be parsed into a menu."""

    def __init__(self, path: Path | None, reason: str):
        self.path = path
        self.reason = reason
        where = f" in {path}" if path is not None else ""
        super().__init__(f"Invalid menu configuration{where}: {reason}")

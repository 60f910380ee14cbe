"""
Custom exceptions for linkerd-await error handling.

Each class carries the process exit code the CLI uses when it is raised.
"""

from .constants import EX_CONFIG, EX_OSERR, EX_UNAVAILABLE, EX_USAGE


class AwaitError(Exception):
    """Base exception for all linkerd-await errors."""
    exit_code: int = 1

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidDuration(AwaitError, ValueError):
    """A duration string could not be parsed."""
    exit_code = EX_USAGE

    def __init__(self, value: str):
        super().__init__(f"invalid duration: {value!r}")
        self.value = value


class InvalidConfiguration(AwaitError):
    """Configuration is invalid or cannot be loaded."""
    exit_code = EX_CONFIG


class ReadinessTimeout(AwaitError):
    """The proxy did not become ready before the fatal timeout elapsed."""
    exit_code = EX_UNAVAILABLE


class ExecFailed(AwaitError):
    """The target program could not replace the current process."""
    exit_code = EX_OSERR

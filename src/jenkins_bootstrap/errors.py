"""Error types for the bootstrap sequence.

Every fatal condition raised by a step is a BootstrapError. The orchestrator
only tolerates these (and only for steps marked ignore_errors); anything else
propagates unchanged.
"""

from dataclasses import dataclass


@dataclass
class BootstrapError(Exception):
    """Base error class for bootstrap failures."""

    message: str
    step: str | None = None
    output: str = ""

    def __str__(self) -> str:
        if self.step:
            return f"{self.step}: {self.message}"
        return self.message

    @classmethod
    def from_os_error(cls, error: OSError, step: str | None = None) -> "BootstrapError":
        """Describe a failed host file operation (permissions, blocked paths)."""
        if error.filename:
            message = f"{error.strerror or error}: {error.filename}"
        else:
            message = str(error) or type(error).__name__
        return cls(message, step=step)


@dataclass
class CommandError(BootstrapError):
    """An external command exited with a non-zero status."""

    message: str = "Command failed"
    returncode: int | None = None


@dataclass
class RetryExhaustedError(BootstrapError):
    """A bounded retry loop ran out of attempts."""

    message: str = "Retry budget exhausted"
    attempts: int = 0


@dataclass
class JobFailedError(BootstrapError):
    """An asynchronous job finished with an error."""

    message: str = "Job failed"
    job: str = ""


@dataclass
class PreconditionError(BootstrapError):
    """A step was started before the milestone it depends on."""

    message: str = "Precondition not met"


@dataclass
class ConfigError(BootstrapError):
    """Configuration file or values are invalid."""

    message: str = "Invalid configuration"


@dataclass
class TemplateError(BootstrapError):
    """A template is missing or references an undefined variable."""

    message: str = "Template rendering failed"
    template: str = ""

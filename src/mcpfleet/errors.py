# ABOUTME: Exception hierarchy for the mcpfleet configuration core
# ABOUTME: Validation failures aggregate every message instead of stopping at the first
from collections.abc import Iterable


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigLoadError(ConfigError):
    """Raised when a configuration document cannot be loaded."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"failed to load configuration: {detail}")
        self.detail = detail


class InvalidKeyError(ConfigError):
    """Raised for an unknown key, or a leaf addressed as if it were a subsection."""

    pass


class InvalidValueError(ConfigError, ValueError):
    """Raised when a raw string cannot be parsed for a key.

    ABOUTME: Carries the offending key and raw value for user-facing messages
    """

    def __init__(self, key: str, value: str, reason: str | None = None) -> None:
        message = f"config value invalid: '{key}' (value: '{value}')"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.key = key
        self.value = value


class NotSetError(ConfigError):
    """Raised when reading a leaf that has no value."""

    pass


class SectionNotSetError(NotSetError):
    """Raised when reading through a subsection that is absent."""

    pass


class NotFoundError(ConfigError):
    """Raised when a server or plugin cannot be found by name."""

    pass


class ValidationFailure(ConfigError):
    """One or more validation problems.

    ABOUTME: .errors holds every message so users can fix them in one pass
    ABOUTME: str() joins the messages with newlines
    """

    def __init__(self, errors: str | Iterable[str]) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = list(errors)
        super().__init__("\n".join(self.errors))

    @classmethod
    def join(cls, errors: Iterable["str | ValidationFailure"]) -> "ValidationFailure | None":
        """Combine messages and nested failures into one failure.

        Returns:
            None when there is nothing to report
        """
        messages: list[str] = []
        for err in errors:
            if isinstance(err, ValidationFailure):
                messages.extend(err.errors)
            else:
                messages.append(str(err))

        if not messages:
            return None
        return cls(messages)

    def prefixed(self, prefix: str) -> "ValidationFailure":
        """Return a copy with every message wrapped as '<prefix>: <message>'."""
        return type(self)([f"{prefix}: {message}" for message in self.errors])


class ConflictError(ValidationFailure):
    """Raised for duplicate servers, or a plugin already present in a target category."""

    pass


class ConfigSaveError(ConfigError):
    """Raised when writing the document fails after an in-memory change.

    The in-memory document is ahead of the file on disk; retry the save or reload.
    """

    pass

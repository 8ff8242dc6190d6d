"""
ScoreDewarp - Custom Exceptions Module

This module defines custom exception classes for the error cases
raised while building the target model and dewarping a page.
"""


class ScoreDewarpError(Exception):
    """Base exception for all ScoreDewarp errors.

    All custom exceptions should inherit from this class to allow
    catching any ScoreDewarp-specific error.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional technical details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class StructuralInconsistencyError(ScoreDewarpError):
    """Raised when the detected system/staff/line hierarchy is unusable.

    Covers empty collections and target lines that do not follow the
    top-to-bottom reading order.
    """

    def __init__(self, reason: str, location: str | None = None) -> None:
        """Initialize the exception.

        Args:
            reason: What is wrong with the structure
            location: Optional position in the hierarchy (e.g. "system 2")
        """
        self.reason = reason
        self.location = location

        msg = f"Structural inconsistency: {reason}"
        details = f"at {location}" if location else None
        super().__init__(msg, details=details)


class DegenerateGeometryError(ScoreDewarpError):
    """Raised when geometry collapses (zero extent, non-finite values)."""

    def __init__(self, reason: str, value: float | None = None) -> None:
        """Initialize the exception.

        Args:
            reason: Description of the degenerate geometry
            value: Optional offending numeric value
        """
        self.reason = reason
        self.value = value

        msg = f"Degenerate geometry: {reason}"
        details = f"value={value}" if value is not None else None
        super().__init__(msg, details=details)


class ConfigurationError(ScoreDewarpError):
    """Raised when there's a configuration-related error."""

    def __init__(self, setting_name: str | None = None, reason: str | None = None) -> None:
        """Initialize the exception.

        Args:
            setting_name: Optional name of the problematic setting
            reason: Optional reason for the error
        """
        self.setting_name = setting_name
        self.reason = reason

        if setting_name:
            msg = f"Configuration error for '{setting_name}'"
        else:
            msg = "Configuration error"

        if reason:
            msg += f": {reason}"

        super().__init__(msg)


class ValidationError(ScoreDewarpError):
    """Raised when input validation fails."""

    def __init__(
        self,
        field: str,
        value: str | None = None,
        reason: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            field: Name of the field that failed validation
            value: Optional value that failed validation
            reason: Optional reason for the validation failure
        """
        self.field = field
        self.value = value
        self.reason = reason

        msg = f"Validation error for '{field}'"
        if reason:
            msg += f": {reason}"

        super().__init__(msg, details=f"value={value}" if value is not None else None)


class ProcessingCancelledError(ScoreDewarpError):
    """Raised when a caller cancels page processing."""

    def __init__(self, stage: str) -> None:
        """Initialize the exception.

        Args:
            stage: Processing stage that observed the cancellation
        """
        self.stage = stage
        super().__init__(f"Processing cancelled during {stage}")


# Exception hierarchy summary:
# ScoreDewarpError (base)
# ├── StructuralInconsistencyError
# ├── DegenerateGeometryError
# ├── ConfigurationError
# ├── ValidationError
# └── ProcessingCancelledError

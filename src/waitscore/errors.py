"""
Error taxonomy for waitscore.

Every failure the package raises on purpose derives from WaitscoreError so
callers (and the CLI) can catch one type.
"""


class WaitscoreError(Exception):
    """Base class for all waitscore errors."""


class MalformedRecordError(WaitscoreError, ValueError):
    """Raised when a patient record is missing a field or holds a non-numeric value."""


class InvalidConfigurationError(WaitscoreError, ValueError):
    """Raised when baseline tables, weights or the facility location are unusable."""


class RecordLoadError(WaitscoreError, RuntimeError):
    """Raised when patient records cannot be read from their locator."""

"""
Error taxonomy for the assessment backend.

Routers translate these into HTTP responses; everything below the router
layer raises them directly.
"""


class AssessmentError(Exception):
    """Base class for all expected failures."""

    status_code = 500


class ConfigurationError(AssessmentError):
    """The spreadsheet (or Drive root) cannot be resolved."""

    status_code = 503


class ValidationError(AssessmentError):
    """A required field is missing or empty."""

    status_code = 400


class SchemaError(AssessmentError):
    """An expected sheet or column is absent."""

    status_code = 500


class StorageError(AssessmentError):
    """Underlying Sheets / Drive read or write failed."""

    status_code = 502

"""Custom exception hierarchy for payment-ledger."""


class LedgerError(Exception):
    """Base exception for all payment-ledger errors."""


class ValidationError(LedgerError):
    """Raised when a payment row fails a schema or business rule.

    Parameters
    ----------
    message : str
        Human readable description.
    field : str | None
        Name of the offending field, if any.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class MissingFieldError(ValidationError):
    """Raised when a required field is missing or empty."""


class InvalidAmountError(ValidationError):
    """Raised when an amount is not a usable signed decimal."""


class InvalidDateError(ValidationError):
    """Raised when a value cannot be parsed as a calendar date."""


class UnknownReferenceError(ValidationError):
    """Raised when a loan or borrower reference cannot be resolved."""


class ConflictError(LedgerError):
    """Raised when an id is re-used for a record with different content."""

    def __init__(self, message: str, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class EntityNotFoundError(LedgerError):
    """Raised when a referenced entity does not exist."""


class LoanNotFoundError(EntityNotFoundError):
    """Raised when a loan id is not known to the registry."""


class UploadParseError(LedgerError):
    """Raised when an uploaded file cannot be read as rows at all."""


class ConfigurationError(LedgerError):
    """Raised when configuration is invalid or missing."""


class SinkError(LedgerError):
    """Raised when a sink operation fails."""

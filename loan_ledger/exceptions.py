"""Custom exception hierarchy for loan-ledger."""


class LedgerError(Exception):
    """Base exception for all loan-ledger errors."""


class NotFoundError(LedgerError):
    """Raised when a referenced client, loan or payment does not exist."""


class InvalidTermsError(LedgerError):
    """Raised when loan terms cannot produce a valid debt or due date."""


class InvalidPaymentError(LedgerError):
    """Raised when a payment amount is not acceptable."""


class InvalidClientError(LedgerError):
    """Raised when a client record is incomplete or still has loans."""


class PersistenceError(LedgerError):
    """Raised when a store operation fails and its transaction was rolled back."""


class ConfigurationError(LedgerError):
    """Raised when configuration is invalid or missing."""


class SinkError(LedgerError):
    """Raised when an event sink cannot be created or used."""

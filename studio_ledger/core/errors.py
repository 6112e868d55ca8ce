"""
Error taxonomy for the Studio Ledger.

Validation errors are raised before any write and carry a human-readable
message meant to be shown to the operator verbatim.
"""


class StudioLedgerError(Exception):
    """Base class for all studio ledger errors."""

    pass


class ValidationError(StudioLedgerError):
    """Raised when an action is rejected before any write happens."""

    pass


class AuthorizationError(ValidationError):
    """Raised when a non-admin actor attempts an admin-only action."""

    pass


class NotFoundError(ValidationError):
    """Raised when a referenced record does not exist."""

    pass


class InvalidStateError(ValidationError):
    """Raised when a record is not in a state that allows the action."""

    pass


class InsufficientFundsError(ValidationError):
    """Raised when the source of a debit cannot cover the amount."""

    pass


class SettlementError(StudioLedgerError):
    """Raised when the settlement write sequence fails and is rolled back."""

    pass

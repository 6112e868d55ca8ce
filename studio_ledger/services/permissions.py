"""
Guards shared by mutating services.

Authentication happens upstream; these helpers only check the admin flag the
caller already resolved and reject malformed amounts before any write.
"""

from decimal import Decimal

from studio_ledger.core.errors import AuthorizationError, ValidationError
from studio_ledger.domain.models import Actor
from studio_ledger.utils.money import round_money, to_decimal


def require_admin(actor: Actor, action: str) -> None:
    """Raise AuthorizationError unless the actor is an admin."""
    if actor is None:
        raise AuthorizationError("Not authenticated")
    if not actor.is_admin:
        raise AuthorizationError(f"Only an admin can {action}")


def require_positive_amount(amount: object) -> Decimal:
    """Return the amount rounded to cents, rejecting zero, negative or malformed input."""
    try:
        value = round_money(to_decimal(amount))
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if value <= 0:
        raise ValidationError("Amount must be positive")
    return value

"""
Settings Service - global rates, fund limit and direct fund adjustments.
"""

from __future__ import annotations

import sqlite3
from decimal import Decimal

from studio_ledger.core.errors import ValidationError
from studio_ledger.domain.models import Actor, Fund, Settings
from studio_ledger.repositories import StudioRepository
from studio_ledger.services.permissions import require_admin
from studio_ledger.utils.database_utils import transactional
from studio_ledger.utils.logging_config import get_logger
from studio_ledger.utils.money import HUNDRED, round_money, to_decimal

logger = get_logger(__name__)


def _parse_rate(value: object, name: str) -> Decimal:
    try:
        rate = to_decimal(value)
    except ValueError as exc:
        raise ValidationError(f"{name} must be a number") from exc
    if rate < 0 or rate > HUNDRED:
        raise ValidationError(f"{name} must be between 0 and 100")
    return rate


def _parse_non_negative_money(value: object, name: str) -> Decimal:
    try:
        amount = round_money(to_decimal(value))
    except ValueError as exc:
        raise ValidationError(f"{name} must be a number") from exc
    if amount < 0:
        raise ValidationError(f"{name} must not be negative")
    return amount


class SettingsService:
    """Read and update the settings singleton and the fund."""

    def __init__(self, db: sqlite3.Connection | None = None) -> None:
        self.repository = StudioRepository(db)
        self.db = self.repository.db

    def close(self) -> None:
        self.repository.close()

    def __enter__(self) -> "SettingsService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_settings(self) -> Settings:
        return self.repository.get_settings()

    def update_settings(
        self,
        *,
        tax_rate: object,
        fund_contribution_rate: object,
        fund_limit: object,
        actor: Actor,
    ) -> Settings:
        """
        Replace the global rates and fund limit.

        Lowering the limit below the current fund balance is allowed; further
        contributions are then clamped to zero until the fund drops below it.
        """
        require_admin(actor, "change settings")
        tax = _parse_rate(tax_rate, "Tax rate")
        fund_rate = _parse_rate(fund_contribution_rate, "Fund contribution rate")
        limit = _parse_non_negative_money(fund_limit, "Fund limit")

        with transactional(self.db):
            self.repository.update_settings(tax, fund_rate, limit)

        logger.info(
            "settings_updated",
            tax_rate=str(tax),
            fund_contribution_rate=str(fund_rate),
            fund_limit=str(limit),
            actor=actor.id,
        )
        return self.repository.get_settings()

    def set_fund_balance(self, amount: object, actor: Actor) -> Fund:
        """Overwrite the fund balance (manual correction)."""
        require_admin(actor, "adjust the fund")
        value = _parse_non_negative_money(amount, "Fund balance")

        with transactional(self.db):
            previous = self.repository.get_fund().current_balance
            self.repository.update_fund_balance(value)

        logger.warning(
            "fund_balance_overwritten",
            previous_balance=str(previous),
            new_balance=str(value),
            actor=actor.id,
        )
        return self.repository.get_fund()

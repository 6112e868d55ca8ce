"""
Adjustment Service - direct transfers between the fund and participants.

Bonuses move money from the fund to a participant balance; returns move it
back. Neither writes a ledger entry: cash does not leave the studio.
"""

from __future__ import annotations

import sqlite3
from decimal import Decimal

from studio_ledger.core.config import Config
from studio_ledger.core.errors import InsufficientFundsError, NotFoundError
from studio_ledger.domain.models import Actor
from studio_ledger.repositories import StudioRepository
from studio_ledger.services.permissions import require_admin, require_positive_amount
from studio_ledger.utils.database_utils import transactional
from studio_ledger.utils.logging_config import get_logger
from studio_ledger.utils.money import ZERO, format_money, round_money

logger = get_logger(__name__)


class AdjustmentService:
    """Bonus and return-to-fund adjustments plus fund read helpers."""

    def __init__(self, db: sqlite3.Connection | None = None) -> None:
        self.repository = StudioRepository(db)
        self.db = self.repository.db

    def close(self) -> None:
        self.repository.close()

    def __enter__(self) -> "AdjustmentService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_fund_balance(self) -> Decimal:
        return self.repository.get_fund().current_balance

    def get_free_cash_amount(self) -> Decimal:
        """
        Money not owed to anyone: fund limit minus every participant's
        available balance, floored at zero.
        """
        settings = self.repository.get_settings()
        owed = self.repository.sum_available_balances()
        return max(ZERO, round_money(settings.fund_limit - owed))

    def issue_bonus(self, participant_id: int, amount: object, actor: Actor) -> Decimal:
        """
        Pay a bonus to a participant out of the fund.

        Returns:
            The fund balance after the bonus.

        Raises:
            InsufficientFundsError: If the fund cannot cover the bonus
        """
        require_admin(actor, "issue bonuses")
        value = require_positive_amount(amount)

        with transactional(self.db):
            self._require_participant(participant_id)
            fund = self.repository.get_fund()
            if fund.current_balance < value:
                available = format_money(fund.current_balance, Config.CURRENCY_SYMBOL)
                raise InsufficientFundsError(
                    f"Insufficient funds in the fund. Available: {available}"
                )
            self.repository.increment_fund_balance(-value)
            self.repository.increment_participant_balance(
                participant_id, value, earned_delta=value
            )

        new_balance = self.get_fund_balance()
        logger.info(
            "bonus_issued",
            participant_id=participant_id,
            amount=str(value),
            fund_balance=str(new_balance),
            actor=actor.id,
        )
        return new_balance

    def return_to_fund(self, participant_id: int, amount: object, actor: Actor) -> Decimal:
        """
        Move money from a participant's available balance back into the fund.

        Returns:
            The fund balance after the return.

        Raises:
            InsufficientFundsError: If the participant balance cannot cover it
        """
        require_admin(actor, "return money to the fund")
        value = require_positive_amount(amount)

        with transactional(self.db):
            self._require_participant(participant_id)
            balance = self.repository.get_balance(participant_id)
            if balance is None or balance.available_amount < value:
                raise InsufficientFundsError("Insufficient funds on the participant balance")
            self.repository.increment_participant_balance(
                participant_id, -value, returned_delta=value
            )
            self.repository.increment_fund_balance(value)

        new_balance = self.get_fund_balance()
        logger.info(
            "returned_to_fund",
            participant_id=participant_id,
            amount=str(value),
            fund_balance=str(new_balance),
            actor=actor.id,
        )
        return new_balance

    def _require_participant(self, participant_id: int) -> None:
        if self.repository.get_participant(participant_id) is None:
            raise NotFoundError(f"Participant not found: {participant_id}")

"""
Participant Service - team roster administration.

Every participant gets a balance row on creation. Participants without a
distribution type (or inactive ones) never share in invoice revenue.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from studio_ledger.core.errors import NotFoundError, ValidationError
from studio_ledger.domain.models import Actor, Balance, Participant, ParticipantType
from studio_ledger.repositories import StudioRepository
from studio_ledger.services.permissions import require_admin
from studio_ledger.utils.database_utils import transactional
from studio_ledger.utils.logging_config import get_logger
from studio_ledger.utils.money import HUNDRED, to_decimal

logger = get_logger(__name__)


@dataclass(frozen=True)
class TeamMember:
    participant: Participant
    balance: Optional[Balance]


def _validate_type_and_rate(
    participant_type: Optional[ParticipantType | str],
    percentage_rate: object,
) -> tuple[Optional[ParticipantType], Optional[Decimal]]:
    if participant_type in (None, ""):
        return None, None
    try:
        kind = ParticipantType(participant_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown participant type: {participant_type}") from exc

    if kind == ParticipantType.PARTNER:
        return kind, None

    if percentage_rate in (None, ""):
        raise ValidationError("Percentage participants need a percentage rate")
    try:
        rate = to_decimal(percentage_rate)
    except ValueError as exc:
        raise ValidationError("Percentage rate must be a number") from exc
    if rate < 0 or rate > HUNDRED:
        raise ValidationError("Percentage rate must be between 0 and 100")
    return kind, rate


class ParticipantService:
    """Add, update and list roster members."""

    def __init__(self, db: sqlite3.Connection | None = None) -> None:
        self.repository = StudioRepository(db)
        self.db = self.repository.db

    def close(self) -> None:
        self.repository.close()

    def __enter__(self) -> "ParticipantService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def add_participant(
        self,
        full_name: str,
        actor: Actor,
        participant_type: Optional[ParticipantType | str] = None,
        percentage_rate: object = None,
        *,
        is_admin: bool = False,
    ) -> Participant:
        require_admin(actor, "add participants")
        full_name = (full_name or "").strip()
        if not full_name:
            raise ValidationError("Full name is required")
        kind, rate = _validate_type_and_rate(participant_type, percentage_rate)

        with transactional(self.db):
            participant_id = self.repository.insert_participant(
                full_name, kind, rate, is_admin=is_admin
            )

        logger.info(
            "participant_added",
            participant_id=participant_id,
            participant_type=kind.value if kind else None,
            actor=actor.id,
        )
        return self.repository.get_participant(participant_id)

    def update_participant(
        self,
        participant_id: int,
        actor: Actor,
        *,
        full_name: str,
        participant_type: Optional[ParticipantType | str],
        percentage_rate: object = None,
        is_active: bool = True,
    ) -> Participant:
        """Change roster data; balances are untouched."""
        require_admin(actor, "update participants")
        full_name = (full_name or "").strip()
        if not full_name:
            raise ValidationError("Full name is required")
        kind, rate = _validate_type_and_rate(participant_type, percentage_rate)

        with transactional(self.db):
            if self.repository.get_participant(participant_id) is None:
                raise NotFoundError(f"Participant not found: {participant_id}")
            self.repository.update_participant(
                participant_id, full_name, kind, rate, is_active
            )

        logger.info(
            "participant_updated",
            participant_id=participant_id,
            is_active=is_active,
            actor=actor.id,
        )
        return self.repository.get_participant(participant_id)

    def list_team_with_balances(self) -> List[TeamMember]:
        """Every participant, by name, with their balance."""
        balances = {b.participant_id: b for b in self.repository.list_balances()}
        return [
            TeamMember(participant=p, balance=balances.get(p.id))
            for p in self.repository.list_participants()
        ]

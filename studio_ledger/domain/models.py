"""
Domain records shared by the Studio Ledger services.

Money fields are Decimal amounts rounded to cents; the repository converts
them to and from the integer minor units stored in SQLite.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class ParticipantType(str, Enum):
    """How a participant shares in invoice revenue."""

    PARTNER = "partner"
    PERCENTAGE = "percentage"


class JobStatus(str, Enum):
    AVAILABLE = "available"
    INVOICED = "invoiced"
    PAID = "paid"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED)


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    PAYOUT = "payout"


@dataclass(frozen=True)
class Actor:
    """Already-authenticated caller; ``id`` is recorded as ``created_by``."""

    id: str
    is_admin: bool = False


@dataclass(frozen=True)
class Settings:
    tax_rate: Decimal
    fund_contribution_rate: Decimal
    fund_limit: Decimal
    updated_at_utc: Optional[str] = None

    def with_tax_rate(self, tax_rate: Decimal) -> "Settings":
        """Return a copy with the tax rate replaced (client-level override)."""
        return Settings(
            tax_rate=tax_rate,
            fund_contribution_rate=self.fund_contribution_rate,
            fund_limit=self.fund_limit,
            updated_at_utc=self.updated_at_utc,
        )


@dataclass(frozen=True)
class Fund:
    current_balance: Decimal
    updated_at_utc: Optional[str] = None


@dataclass(frozen=True)
class Participant:
    """A roster member eligible for invoice-revenue distribution."""

    id: int
    full_name: str
    participant_type: Optional[ParticipantType]
    percentage_rate: Optional[Decimal] = None
    is_active: bool = True
    is_admin: bool = False


@dataclass(frozen=True)
class Balance:
    participant_id: int
    available_amount: Decimal
    total_earned: Decimal
    total_withdrawn: Decimal
    total_returned: Decimal
    updated_at_utc: Optional[str] = None


@dataclass(frozen=True)
class Job:
    id: int
    client_id: int
    description: str
    amount: Decimal
    status: JobStatus
    created_by: str
    created_at_utc: Optional[str] = None


@dataclass(frozen=True)
class Invoice:
    id: int
    invoice_number: str
    client_id: int
    total_amount: Decimal
    status: InvoiceStatus
    created_by: str
    client_name: Optional[str] = None
    client_tax_rate: Optional[Decimal] = None
    paid_at_utc: Optional[str] = None
    created_at_utc: Optional[str] = None
    job_ids: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class Transaction:
    """Immutable cash-flow ledger entry; ``amount`` is always a magnitude."""

    id: int
    date: str
    type: TransactionType
    amount: Decimal
    created_by: str
    created_at_utc: str
    category_slug: Optional[str] = None
    category_name: Optional[str] = None
    description: Optional[str] = None
    related_invoice_id: Optional[int] = None
    related_participant_id: Optional[int] = None

    @property
    def signed_amount(self) -> Decimal:
        """Cash effect of the entry: positive for income, negative otherwise."""
        return self.amount if self.type == TransactionType.INCOME else -self.amount


@dataclass(frozen=True)
class NewTransaction:
    """Ledger entry to be inserted; the store assigns id and created_at."""

    date: str
    type: TransactionType
    amount: Decimal
    created_by: str
    category_id: Optional[int] = None
    description: Optional[str] = None
    related_invoice_id: Optional[int] = None
    related_participant_id: Optional[int] = None

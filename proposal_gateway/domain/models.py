"""Domain models - value objects and external verdicts used by the proposal aggregate"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Iterator, List, Optional, Tuple
from uuid import UUID

from proposal_gateway.domain.enums import OccurrenceType, PolicyStatus, RiskTier
from proposal_gateway.domain.exceptions import (
    CurrencyMismatchError,
    HistoryOrderError,
    InvalidAmountError,
)


@dataclass(frozen=True)
class Money:
    """Non-negative decimal amount tagged with an ISO currency code.

    Ordering is only defined between amounts of the same currency;
    comparing across currencies raises CurrencyMismatchError.
    """

    amount: Decimal
    currency: str = "BRL"

    def __post_init__(self) -> None:
        try:
            amount = self.amount if isinstance(self.amount, Decimal) else Decimal(str(self.amount))
        except (InvalidOperation, ValueError, TypeError) as e:
            raise InvalidAmountError(f"Amount is not a number: {self.amount!r}") from e

        if not amount.is_finite():
            raise InvalidAmountError(f"Amount must be finite: {self.amount!r}")
        if amount < 0:
            raise InvalidAmountError(f"Amount cannot be negative: {amount}")
        if not isinstance(self.currency, str) or len(self.currency) != 3 or not self.currency.isalpha():
            raise InvalidAmountError(f"Invalid currency code: {self.currency!r}")

        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "currency", self.currency.upper())

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot compare Money with {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatchError(f"Cannot compare {self.currency} with {other.currency}")

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


@dataclass(frozen=True)
class HistoryEntry:
    """Single status change in a proposal's audit trail"""

    status: PolicyStatus
    timestamp: datetime
    reason: Optional[str] = None


class HistoryLog:
    """Append-only, time-ordered audit trail.

    Entries are never reordered, deduplicated or dropped. Readers receive
    tuple snapshots, so the log can only grow through append().
    """

    def __init__(self, entries: Iterable[HistoryEntry] = ()):
        self._entries: List[HistoryEntry] = []
        for entry in entries:
            self.append(entry)

    def ensure_accepts(self, timestamp: datetime) -> None:
        """Raise HistoryOrderError if timestamp predates the last entry"""
        if self._entries and timestamp < self._entries[-1].timestamp:
            raise HistoryOrderError(
                f"Timestamp {timestamp.isoformat()} is earlier than last history entry "
                f"{self._entries[-1].timestamp.isoformat()}"
            )

    def append(self, entry: HistoryEntry) -> None:
        self.ensure_accepts(entry.timestamp)
        self._entries.append(entry)

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    @property
    def last(self) -> Optional[HistoryEntry]:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self.entries)


@dataclass(frozen=True)
class RiskOccurrence:
    """Fraud or suspicion finding reported by the risk service"""

    occurrence_id: str
    product_id: str
    type: OccurrenceType
    description: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class RiskAssessment:
    """Output of the external risk service for one proposal"""

    proposal_id: UUID
    customer_id: UUID
    analyzed_at: datetime
    classification: RiskTier
    occurrences: Tuple[RiskOccurrence, ...] = field(default_factory=tuple)

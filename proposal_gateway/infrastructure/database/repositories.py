"""Data access layer for policy proposals"""

import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from proposal_gateway.domain.enums import Category, PaymentMethod, PolicyStatus, SalesChannel
from proposal_gateway.domain.exceptions import ConcurrencyConflictError, InvalidAmountError, ProposalNotFoundError
from proposal_gateway.domain.models import HistoryEntry, Money
from proposal_gateway.domain.proposal import PolicyProposal, VerdictSlot
from proposal_gateway.infrastructure.database.models import PolicyProposalRecord, StatusHistoryRecord
from proposal_gateway.utils.date_utils import ensure_utc


# Numeric(18, 2): two decimal places, sixteen integer digits
CENT = Decimal("0.01")
AMOUNT_MAX_INTEGER_DIGITS = 16


def _storable(money: Money, field_name: str) -> Money:
    """Refuse amounts the amount columns would overflow or silently round"""
    if money.amount.adjusted() >= AMOUNT_MAX_INTEGER_DIGITS:
        raise InvalidAmountError(f"{field_name} is too large to store: {money.amount}")
    if money.amount != money.amount.quantize(CENT):
        raise InvalidAmountError(f"{field_name} has more than two decimal places: {money.amount}")
    return money


def _state_values(proposal: PolicyProposal) -> Dict[str, Any]:
    """Mutable columns of the proposal row"""
    return {
        "status": proposal.status.value,
        "finished_at": proposal.finished_at,
        "payment_response_received": proposal.payment.received,
        "payment_confirmed": proposal.payment.confirmed,
        "payment_rejection_reason": proposal.payment.rejection_reason,
        "subscription_response_received": proposal.subscription.received,
        "subscription_confirmed": proposal.subscription.confirmed,
        "subscription_rejection_reason": proposal.subscription.rejection_reason,
    }


def _history_record(proposal_id: uuid.UUID, sequence: int, entry: HistoryEntry) -> StatusHistoryRecord:
    return StatusHistoryRecord(
        proposal_id=proposal_id,
        sequence=sequence,
        status=entry.status.value,
        timestamp=entry.timestamp,
        reason=entry.reason,
    )


def _to_domain(record: PolicyProposalRecord) -> PolicyProposal:
    return PolicyProposal.restore(
        proposal_id=record.id,
        customer_id=record.customer_id,
        product_id=record.product_id,
        category=Category(record.category),
        sales_channel=SalesChannel(record.sales_channel),
        payment_method=PaymentMethod(record.payment_method),
        monthly_premium=Money(record.monthly_premium_amount, record.monthly_premium_currency),
        insured_amount=Money(record.insured_amount, record.insured_currency),
        coverages={
            name: Money(Decimal(value["amount"]), value["currency"])
            for name, value in record.coverages.items()
        },
        assistances=list(record.assistances),
        created_at=ensure_utc(record.created_at),
        status=PolicyStatus(record.status),
        finished_at=ensure_utc(record.finished_at) if record.finished_at else None,
        payment=VerdictSlot(
            received=record.payment_response_received,
            confirmed=record.payment_confirmed,
            rejection_reason=record.payment_rejection_reason,
        ),
        subscription=VerdictSlot(
            received=record.subscription_response_received,
            confirmed=record.subscription_confirmed,
            rejection_reason=record.subscription_rejection_reason,
        ),
        version=record.version,
        history=[
            HistoryEntry(PolicyStatus(h.status), ensure_utc(h.timestamp), h.reason)
            for h in sorted(record.history, key=lambda h: h.sequence)
        ],
    )


class ProposalRepository:
    """
    Repository for policy proposals.

    Saves are compare-and-set on the version column: a proposal saved by
    another writer since it was loaded raises ConcurrencyConflictError.
    History rows are append-only; save() inserts only entries not yet stored.
    """

    def __init__(self, db: Session):
        self.db = db

    def add(self, proposal: PolicyProposal) -> PolicyProposalRecord:
        """Persist a newly created proposal"""
        _storable(proposal.monthly_premium, "Monthly premium")
        _storable(proposal.insured_amount, "Insured amount")
        for name, money in proposal.coverages.items():
            _storable(money, f"Coverage '{name}'")

        record = PolicyProposalRecord(
            id=proposal.id,
            customer_id=proposal.customer_id,
            product_id=proposal.product_id,
            category=proposal.category.value,
            sales_channel=proposal.sales_channel.value,
            payment_method=proposal.payment_method.value,
            monthly_premium_amount=proposal.monthly_premium.amount,
            monthly_premium_currency=proposal.monthly_premium.currency,
            insured_amount=proposal.insured_amount.amount,
            insured_currency=proposal.insured_amount.currency,
            coverages={
                name: {"amount": str(money.amount), "currency": money.currency}
                for name, money in proposal.coverages.items()
            },
            assistances=list(proposal.assistances),
            created_at=proposal.created_at,
            version=1,
            **_state_values(proposal),
        )
        self.db.add(record)
        for sequence, entry in enumerate(proposal.history):
            self.db.add(_history_record(proposal.id, sequence, entry))
        self.db.flush()  # Surface constraint errors without committing

        proposal.mark_persisted(1)
        return record

    def get(self, proposal_id: uuid.UUID, for_update: bool = False) -> Optional[PolicyProposal]:
        """Load a proposal; for_update takes a row lock where the database supports it"""
        query = self.db.query(PolicyProposalRecord).filter(PolicyProposalRecord.id == proposal_id)
        if for_update:
            query = query.with_for_update()
        record = query.first()
        return _to_domain(record) if record else None

    def require(self, proposal_id: uuid.UUID, for_update: bool = False) -> PolicyProposal:
        proposal = self.get(proposal_id, for_update=for_update)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal {proposal_id} not found")
        return proposal

    def list_by_customer(self, customer_id: uuid.UUID, limit: int = 20) -> List[PolicyProposal]:
        """Fetch a customer's most recent proposals"""
        records = (
            self.db.query(PolicyProposalRecord)
            .filter(PolicyProposalRecord.customer_id == customer_id)
            .order_by(PolicyProposalRecord.created_at.desc())
            .limit(limit)
            .all()
        )
        return [_to_domain(record) for record in records]

    def save(self, proposal: PolicyProposal) -> None:
        """Write lifecycle changes back, bumping the version"""
        expected_version = proposal.version
        result = self.db.execute(
            update(PolicyProposalRecord)
            .where(
                PolicyProposalRecord.id == proposal.id,
                PolicyProposalRecord.version == expected_version,
            )
            .values(version=expected_version + 1, **_state_values(proposal))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyConflictError(
                f"Proposal {proposal.id} changed since version {expected_version} was loaded"
            )

        stored = (
            self.db.query(func.count(StatusHistoryRecord.id))
            .filter(StatusHistoryRecord.proposal_id == proposal.id)
            .scalar()
        )
        history = proposal.history
        for sequence in range(stored, len(history)):
            self.db.add(_history_record(proposal.id, sequence, history[sequence]))
        self.db.flush()
        # Loaded rows still hold the pre-update state
        self.db.expire_all()

        proposal.mark_persisted(expected_version + 1)

"""Unit tests for the proposal lifecycle state machine"""

import uuid
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import MappingProxyType
from proposal_gateway.domain.enums import Category, PolicyStatus, RiskTier, VerdictChannel
from proposal_gateway.domain.exceptions import (
    DuplicateVerdictError,
    HistoryOrderError,
    IllegalTransitionError,
    InvalidAmountError,
    InvalidIntakeError,
)
from proposal_gateway.domain.models import HistoryEntry, Money
from proposal_gateway.domain.proposal import PolicyProposal, VerdictSlot

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


def test_create_starts_received_with_single_history_entry(make_proposal):
    proposal = make_proposal()

    assert proposal.status == PolicyStatus.RECEIVED
    assert len(proposal.history) == 1
    assert proposal.history[0] == HistoryEntry(PolicyStatus.RECEIVED, T0, None)
    assert proposal.created_at == T0
    assert proposal.finished_at is None
    assert proposal.version == 0
    assert proposal.awaiting_verdicts == (VerdictChannel.PAYMENT, VerdictChannel.SUBSCRIPTION)
    assert not proposal.payment_response_received
    assert not proposal.subscription_response_received


def test_create_uses_injected_id_factory(make_proposal):
    fixed = uuid.UUID("8f1c2e0a-0000-4000-8000-000000000001")
    proposal = make_proposal(id_factory=lambda: fixed)

    assert proposal.id == fixed


def test_create_generates_distinct_ids(make_proposal):
    assert make_proposal().id != make_proposal().id


def test_create_rejects_empty_coverages(make_proposal):
    with pytest.raises(InvalidIntakeError):
        make_proposal(coverages={})


def test_create_rejects_empty_assistances(make_proposal):
    with pytest.raises(InvalidIntakeError):
        make_proposal(assistances=[])


def test_create_rejects_blank_product(make_proposal):
    with pytest.raises(InvalidIntakeError):
        make_proposal(product_id="  ")


def test_create_rejects_raw_decimal_amount(make_proposal):
    """Amounts must arrive as Money"""
    with pytest.raises(InvalidIntakeError):
        make_proposal(monthly_premium=Decimal("10"))


def test_create_rejects_unknown_category(make_proposal):
    with pytest.raises(InvalidIntakeError):
        make_proposal(category="TRAVEL")


def test_negative_amount_fails_before_intake(make_proposal):
    with pytest.raises(InvalidAmountError):
        make_proposal(insured_amount="-1.00")


def test_intake_collections_are_immutable(make_proposal):
    coverages = {"Theft": Money("100")}
    assistances = ["Towing"]
    proposal = make_proposal(coverages=coverages, assistances=assistances)

    coverages["Fire"] = Money("1")
    assistances.append("Locksmith")

    assert list(proposal.coverages) == ["Theft"]
    assert proposal.assistances == ("Towing",)
    assert isinstance(proposal.coverages, MappingProxyType)
    with pytest.raises(TypeError):
        proposal.coverages["Fire"] = Money("1")


def test_validate_accepts_within_limit(make_proposal):
    proposal = make_proposal(insured_amount="350000.00", category=Category.AUTO)

    result = proposal.validate(RiskTier.REGULAR, at(1))

    assert result.accepted is True
    assert proposal.status == PolicyStatus.VALIDATED
    assert proposal.history[-1] == HistoryEntry(PolicyStatus.VALIDATED, at(1), None)
    assert proposal.finished_at is None


def test_validate_rejects_over_limit_with_reason(make_proposal):
    proposal = make_proposal(insured_amount="350000.01", category=Category.AUTO)

    proposal.validate(RiskTier.REGULAR, at(1))

    assert proposal.status == PolicyStatus.REJECTED
    assert proposal.finished_at == at(1)
    assert "REGULAR" in proposal.history[-1].reason
    assert "AUTO" in proposal.history[-1].reason
    assert "350000.00" in proposal.history[-1].reason


def test_validate_only_from_received(make_proposal):
    proposal = make_proposal()
    proposal.validate(RiskTier.REGULAR, at(1))

    with pytest.raises(IllegalTransitionError) as exc_info:
        proposal.validate(RiskTier.REGULAR, at(2))

    assert exc_info.value.from_status == PolicyStatus.VALIDATED
    assert exc_info.value.to_status == PolicyStatus.VALIDATED
    assert len(proposal.history) == 2


def test_mark_as_pending_from_validated(make_proposal):
    proposal = make_proposal()
    proposal.validate(RiskTier.REGULAR, at(1))
    proposal.mark_as_pending(at(2))

    assert proposal.status == PolicyStatus.PENDING
    assert [e.status for e in proposal.history] == [
        PolicyStatus.RECEIVED,
        PolicyStatus.VALIDATED,
        PolicyStatus.PENDING,
    ]


def test_mark_as_pending_requires_validated(make_proposal):
    proposal = make_proposal()

    with pytest.raises(IllegalTransitionError) as exc_info:
        proposal.mark_as_pending(at(1))

    assert exc_info.value.from_status == PolicyStatus.RECEIVED
    assert exc_info.value.to_status == PolicyStatus.PENDING
    assert proposal.status == PolicyStatus.RECEIVED


@pytest.mark.parametrize("steps", [0, 1, 2])
def test_cancel_from_every_open_status(make_proposal, steps):
    """RECEIVED, VALIDATED and PENDING can all be canceled"""
    proposal = make_proposal()
    if steps >= 1:
        proposal.validate(RiskTier.REGULAR, at(1))
    if steps >= 2:
        proposal.mark_as_pending(at(2))

    proposal.cancel("Customer gave up", at(3))

    assert proposal.status == PolicyStatus.CANCELED
    assert proposal.finished_at == at(3)
    assert proposal.history[-1] == HistoryEntry(PolicyStatus.CANCELED, at(3), "Customer gave up")


def test_cancel_twice_fails(make_proposal):
    proposal = make_proposal()
    proposal.cancel("first", at(1))

    with pytest.raises(IllegalTransitionError):
        proposal.cancel("second", at(2))

    assert proposal.finished_at == at(1)
    assert len(proposal.history) == 2


def test_cancel_rejected_proposal_fails(make_proposal):
    proposal = make_proposal(insured_amount="999999.00")
    proposal.validate(RiskTier.NO_INFORMATION, at(1))

    with pytest.raises(IllegalTransitionError):
        proposal.cancel("too late", at(2))

    assert proposal.status == PolicyStatus.REJECTED


def test_cancel_approved_proposal_fails(pending_proposal):
    """An approved proposal can never be canceled"""
    pending_proposal.record_payment_verdict(True, None, at(3))
    pending_proposal.record_subscription_verdict(True, None, at(4))
    history_before = pending_proposal.history

    with pytest.raises(IllegalTransitionError) as exc_info:
        pending_proposal.cancel("changed my mind", at(5))

    assert exc_info.value.from_status == PolicyStatus.APPROVED
    assert exc_info.value.to_status == PolicyStatus.CANCELED
    assert pending_proposal.status == PolicyStatus.APPROVED
    assert pending_proposal.history == history_before


def test_history_grows_by_one_per_transition(make_proposal):
    proposal = make_proposal()
    lengths = [len(proposal.history)]

    proposal.validate(RiskTier.PREFERENTIAL, at(1))
    lengths.append(len(proposal.history))
    proposal.mark_as_pending(at(1))
    lengths.append(len(proposal.history))
    proposal.record_payment_verdict(True, None, at(2))
    lengths.append(len(proposal.history))
    proposal.record_subscription_verdict(True, None, at(3))
    lengths.append(len(proposal.history))

    assert lengths == [1, 2, 3, 3, 4]
    timestamps = [e.timestamp for e in proposal.history]
    assert timestamps == sorted(timestamps)


def test_transition_with_earlier_timestamp_is_refused(make_proposal):
    proposal = make_proposal(now=at(10))

    with pytest.raises(HistoryOrderError):
        proposal.validate(RiskTier.REGULAR, at(5))

    assert proposal.status == PolicyStatus.RECEIVED
    assert len(proposal.history) == 1


def test_history_cannot_be_mutated_from_outside(make_proposal):
    proposal = make_proposal()

    with pytest.raises(AttributeError):
        proposal.history.append(HistoryEntry(PolicyStatus.APPROVED, at(1)))
    with pytest.raises(AttributeError):
        proposal.status = PolicyStatus.APPROVED

    assert len(proposal.history) == 1


def test_restore_round_trips_state(pending_proposal):
    restored = PolicyProposal.restore(
        proposal_id=pending_proposal.id,
        customer_id=pending_proposal.customer_id,
        product_id=pending_proposal.product_id,
        category=pending_proposal.category,
        sales_channel=pending_proposal.sales_channel,
        payment_method=pending_proposal.payment_method,
        monthly_premium=pending_proposal.monthly_premium,
        insured_amount=pending_proposal.insured_amount,
        coverages=dict(pending_proposal.coverages),
        assistances=list(pending_proposal.assistances),
        created_at=pending_proposal.created_at,
        status=pending_proposal.status,
        finished_at=None,
        payment=VerdictSlot(received=True, confirmed=True),
        version=3,
        history=pending_proposal.history,
    )

    assert restored.status == PolicyStatus.PENDING
    assert restored.history == pending_proposal.history
    assert restored.version == 3
    assert restored.awaiting_verdicts == (VerdictChannel.SUBSCRIPTION,)

    with pytest.raises(DuplicateVerdictError):
        restored.record_payment_verdict(True, None, at(5))


def test_restore_rejects_inconsistent_state(pending_proposal):
    with pytest.raises(InvalidIntakeError):
        PolicyProposal.restore(
            proposal_id=pending_proposal.id,
            customer_id=pending_proposal.customer_id,
            product_id=pending_proposal.product_id,
            category=pending_proposal.category,
            sales_channel=pending_proposal.sales_channel,
            payment_method=pending_proposal.payment_method,
            monthly_premium=pending_proposal.monthly_premium,
            insured_amount=pending_proposal.insured_amount,
            coverages=dict(pending_proposal.coverages),
            assistances=list(pending_proposal.assistances),
            created_at=pending_proposal.created_at,
            status=PolicyStatus.APPROVED,
            finished_at=None,
            history=pending_proposal.history,
        )


def restore_fields(proposal, **overrides):
    fields = dict(
        proposal_id=proposal.id,
        customer_id=proposal.customer_id,
        product_id=proposal.product_id,
        category=proposal.category,
        sales_channel=proposal.sales_channel,
        payment_method=proposal.payment_method,
        monthly_premium=proposal.monthly_premium,
        insured_amount=proposal.insured_amount,
        coverages=dict(proposal.coverages),
        assistances=list(proposal.assistances),
        created_at=proposal.created_at,
        status=proposal.status,
        finished_at=proposal.finished_at,
        payment=proposal.payment,
        subscription=proposal.subscription,
        history=proposal.history,
    )
    fields.update(overrides)
    return fields


def test_restore_rejects_pending_with_both_verdicts(pending_proposal):
    """A PENDING row holding both verdicts could never be decided"""
    both = VerdictSlot(received=True, confirmed=True)

    with pytest.raises(InvalidIntakeError):
        PolicyProposal.restore(**restore_fields(pending_proposal, payment=both, subscription=both))


def test_restore_rejects_verdicts_before_pending(make_proposal):
    proposal = make_proposal()

    with pytest.raises(InvalidIntakeError):
        PolicyProposal.restore(**restore_fields(proposal, payment=VerdictSlot(received=True, confirmed=True)))


def test_restore_rejects_approved_with_a_rejected_verdict(pending_proposal):
    pending_proposal.record_payment_verdict(True, None, at(3))
    pending_proposal.record_subscription_verdict(True, None, at(4))
    rejected = VerdictSlot(received=True, confirmed=False, rejection_reason="Card declined")

    with pytest.raises(InvalidIntakeError):
        PolicyProposal.restore(**restore_fields(pending_proposal, payment=rejected))


def test_restore_rejects_outcome_without_receipt(pending_proposal):
    with pytest.raises(InvalidIntakeError):
        PolicyProposal.restore(**restore_fields(pending_proposal, payment=VerdictSlot(confirmed=True)))


def test_restore_accepts_every_reachable_verdict_combination(make_proposal, pending_proposal):
    underwriting_rejected = make_proposal(insured_amount="999999.00")
    underwriting_rejected.validate(RiskTier.NO_INFORMATION, at(1))
    pending_proposal.record_payment_verdict(False, "Card declined", at(3))
    canceled_midway = make_proposal()
    canceled_midway.validate(RiskTier.REGULAR, at(1))
    canceled_midway.mark_as_pending(at(2))
    canceled_midway.record_subscription_verdict(True, None, at(3))
    canceled_midway.cancel("Customer request", at(4))

    for proposal in (underwriting_rejected, pending_proposal, canceled_midway):
        restored = PolicyProposal.restore(**restore_fields(proposal))
        assert restored.status == proposal.status

"""Policy proposal aggregate - lifecycle state machine and dual-confirmation reconciliation"""

import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from functools import wraps
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple
from uuid import UUID

from proposal_gateway.domain import underwriting
from proposal_gateway.domain.enums import (
    Category,
    PaymentMethod,
    PolicyStatus,
    RiskTier,
    SalesChannel,
    VerdictChannel,
)
from proposal_gateway.domain.exceptions import (
    DuplicateVerdictError,
    IllegalTransitionError,
    InvalidIntakeError,
)
from proposal_gateway.domain.models import HistoryEntry, HistoryLog, Money

# Legal edges of the lifecycle. Terminal states have no outgoing edge.
TRANSITIONS: Dict[PolicyStatus, FrozenSet[PolicyStatus]] = {
    PolicyStatus.RECEIVED: frozenset({PolicyStatus.VALIDATED, PolicyStatus.REJECTED, PolicyStatus.CANCELED}),
    PolicyStatus.VALIDATED: frozenset({PolicyStatus.PENDING, PolicyStatus.CANCELED}),
    PolicyStatus.PENDING: frozenset({PolicyStatus.APPROVED, PolicyStatus.REJECTED, PolicyStatus.CANCELED}),
}

MISSING_REASON = "no reason given"


@dataclass(frozen=True)
class VerdictSlot:
    """Recorded outcome of one confirmation channel"""

    received: bool = False
    confirmed: bool = False
    rejection_reason: Optional[str] = None


def _synchronized(method):
    """Serialize a mutating method on the aggregate's own lock"""

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        raise InvalidIntakeError(f"Invalid {field_name}: {value!r}") from e


def _require_money(value, field_name: str) -> Money:
    if not isinstance(value, Money):
        raise InvalidIntakeError(f"{field_name} must be a Money value, got {type(value).__name__}")
    return value


def _clean_coverages(coverages: Mapping[str, Money]) -> Mapping[str, Money]:
    if not coverages:
        raise InvalidIntakeError("At least one coverage is required")

    cleaned: Dict[str, Money] = {}
    for name, value in coverages.items():
        if not isinstance(name, str) or not name.strip():
            raise InvalidIntakeError(f"Coverage name must be a non-empty string: {name!r}")
        cleaned[name] = _require_money(value, f"Coverage '{name}'")
    return MappingProxyType(cleaned)


def _clean_assistances(assistances: Iterable[str]) -> Tuple[str, ...]:
    if assistances is None or isinstance(assistances, str):
        raise InvalidIntakeError("Assistances must be a list of names")

    cleaned = tuple(assistances)
    if not cleaned:
        raise InvalidIntakeError("At least one assistance is required")
    for item in cleaned:
        if not isinstance(item, str) or not item.strip():
            raise InvalidIntakeError(f"Assistance must be a non-empty string: {item!r}")
    return cleaned


def _check_verdict_slots(status: PolicyStatus, payment: VerdictSlot, subscription: VerdictSlot) -> None:
    """Verdict flags a persisted proposal can legally hold in the given status"""
    for slot in (payment, subscription):
        if not slot.received and (slot.confirmed or slot.rejection_reason is not None):
            raise InvalidIntakeError("Verdict outcome recorded without the verdict being received")

    received = sum(slot.received for slot in (payment, subscription))
    if status in (PolicyStatus.RECEIVED, PolicyStatus.VALIDATED):
        allowed = received == 0
    elif status is PolicyStatus.APPROVED:
        allowed = received == 2 and payment.confirmed and subscription.confirmed
    elif status is PolicyStatus.REJECTED:
        # Rejected by underwriting, or by the pair of verdicts
        allowed = received == 0 or (received == 2 and not (payment.confirmed and subscription.confirmed))
    else:
        # PENDING and CANCELED: the pair is never complete
        allowed = received < 2

    if not allowed:
        raise InvalidIntakeError(f"Verdict flags are inconsistent with status {status.value}")


class PolicyProposal:
    """
    Aggregate root for an insurance policy proposal.

    Lifecycle:
        RECEIVED  -> VALIDATED | REJECTED (validate) | CANCELED
        VALIDATED -> PENDING (mark_as_pending) | CANCELED
        PENDING   -> APPROVED | REJECTED (verdict reconciliation) | CANCELED

    Payment and subscription verdicts are recorded at most once each, in any
    order. The proposal is decided only when both have arrived: approved if
    both are positive, rejected otherwise.

    Every mutation holds the proposal's own lock and appends exactly one
    history entry when the status changes. Build instances with create() or,
    from storage, restore().
    """

    def __init__(
        self,
        *,
        proposal_id: UUID,
        customer_id: UUID,
        product_id: str,
        category: Category,
        sales_channel: SalesChannel,
        payment_method: PaymentMethod,
        monthly_premium: Money,
        insured_amount: Money,
        coverages: Mapping[str, Money],
        assistances: Iterable[str],
        created_at: datetime,
        status: PolicyStatus,
        history: HistoryLog,
        finished_at: Optional[datetime] = None,
        payment: VerdictSlot = VerdictSlot(),
        subscription: VerdictSlot = VerdictSlot(),
        version: int = 0,
    ):
        if not isinstance(customer_id, UUID):
            try:
                customer_id = UUID(str(customer_id))
            except ValueError as e:
                raise InvalidIntakeError(f"Invalid customer id: {customer_id!r}") from e
        if not isinstance(product_id, str) or not product_id.strip():
            raise InvalidIntakeError("Product id is required")

        self._id = proposal_id
        self._customer_id = customer_id
        self._product_id = product_id
        self._category = _coerce_enum(Category, category, "category")
        self._sales_channel = _coerce_enum(SalesChannel, sales_channel, "sales channel")
        self._payment_method = _coerce_enum(PaymentMethod, payment_method, "payment method")
        self._monthly_premium = _require_money(monthly_premium, "Monthly premium")
        self._insured_amount = _require_money(insured_amount, "Insured amount")
        self._coverages = _clean_coverages(coverages)
        self._assistances = _clean_assistances(assistances)
        self._created_at = created_at
        self._status = status
        self._history = history
        self._finished_at = finished_at
        self._verdicts: Dict[VerdictChannel, VerdictSlot] = {
            VerdictChannel.PAYMENT: payment,
            VerdictChannel.SUBSCRIPTION: subscription,
        }
        self._version = version
        self._lock = threading.RLock()

    @classmethod
    def create(
        cls,
        customer_id: UUID,
        product_id: str,
        category: Category,
        sales_channel: SalesChannel,
        payment_method: PaymentMethod,
        monthly_premium: Money,
        insured_amount: Money,
        coverages: Mapping[str, Money],
        assistances: Iterable[str],
        now: datetime,
        id_factory: Callable[[], UUID] = uuid.uuid4,
    ) -> "PolicyProposal":
        """
        Intake a new proposal in RECEIVED with its history seeded.

        Raises:
            InvalidIntakeError: empty coverages or assistances, blank product id,
                unknown enum values, or amounts that are not Money
        """
        return cls(
            proposal_id=id_factory(),
            customer_id=customer_id,
            product_id=product_id,
            category=category,
            sales_channel=sales_channel,
            payment_method=payment_method,
            monthly_premium=monthly_premium,
            insured_amount=insured_amount,
            coverages=coverages,
            assistances=assistances,
            created_at=now,
            status=PolicyStatus.RECEIVED,
            history=HistoryLog([HistoryEntry(PolicyStatus.RECEIVED, now)]),
        )

    @classmethod
    def restore(
        cls,
        *,
        history: Iterable[HistoryEntry],
        **fields,
    ) -> "PolicyProposal":
        """Rebuild a persisted proposal, checking the lifecycle invariants"""
        log = HistoryLog(history)
        if not len(log) or log.entries[0].status is not PolicyStatus.RECEIVED:
            raise InvalidIntakeError("Persisted history must start with RECEIVED")

        status = fields["status"]
        if log.last.status is not status:
            raise InvalidIntakeError(
                f"Persisted status {status.value} does not match last history entry {log.last.status.value}"
            )
        if status.is_terminal != (fields.get("finished_at") is not None):
            raise InvalidIntakeError("finished_at must be set exactly when the status is terminal")
        _check_verdict_slots(status, fields.get("payment", VerdictSlot()), fields.get("subscription", VerdictSlot()))

        return cls(history=log, **fields)

    # -- read accessors ---------------------------------------------------

    @property
    def id(self) -> UUID:
        return self._id

    @property
    def customer_id(self) -> UUID:
        return self._customer_id

    @property
    def product_id(self) -> str:
        return self._product_id

    @property
    def category(self) -> Category:
        return self._category

    @property
    def sales_channel(self) -> SalesChannel:
        return self._sales_channel

    @property
    def payment_method(self) -> PaymentMethod:
        return self._payment_method

    @property
    def monthly_premium(self) -> Money:
        return self._monthly_premium

    @property
    def insured_amount(self) -> Money:
        return self._insured_amount

    @property
    def coverages(self) -> Mapping[str, Money]:
        return self._coverages

    @property
    def assistances(self) -> Tuple[str, ...]:
        return self._assistances

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def status(self) -> PolicyStatus:
        return self._status

    @property
    def finished_at(self) -> Optional[datetime]:
        return self._finished_at

    @property
    def history(self) -> Tuple[HistoryEntry, ...]:
        return self._history.entries

    @property
    def version(self) -> int:
        return self._version

    @property
    def payment(self) -> VerdictSlot:
        return self._verdicts[VerdictChannel.PAYMENT]

    @property
    def subscription(self) -> VerdictSlot:
        return self._verdicts[VerdictChannel.SUBSCRIPTION]

    @property
    def payment_response_received(self) -> bool:
        return self.payment.received

    @property
    def payment_confirmed(self) -> bool:
        return self.payment.confirmed

    @property
    def payment_rejection_reason(self) -> Optional[str]:
        return self.payment.rejection_reason

    @property
    def subscription_response_received(self) -> bool:
        return self.subscription.received

    @property
    def subscription_confirmed(self) -> bool:
        return self.subscription.confirmed

    @property
    def subscription_rejection_reason(self) -> Optional[str]:
        return self.subscription.rejection_reason

    @property
    def awaiting_verdicts(self) -> Tuple[VerdictChannel, ...]:
        """Channels that have not reported yet"""
        return tuple(channel for channel in VerdictChannel if not self._verdicts[channel].received)

    # -- transitions --------------------------------------------------------

    @_synchronized
    def validate(self, tier: RiskTier, now: datetime) -> underwriting.UnderwritingResult:
        """
        Gate the proposal through the underwriting limit matrix.

        Moves RECEIVED to VALIDATED when the insured amount is within the
        tier/category ceiling, or to REJECTED with the matrix's reason.
        """
        self._check_transition(PolicyStatus.VALIDATED)
        self._history.ensure_accepts(now)

        result = underwriting.evaluate(self._insured_amount, self._category, RiskTier(tier))
        if result.accepted:
            self._transition(PolicyStatus.VALIDATED, now)
        else:
            self._transition(PolicyStatus.REJECTED, now, result.reason)
        return result

    @_synchronized
    def mark_as_pending(self, now: datetime) -> None:
        self._transition(PolicyStatus.PENDING, now)

    @_synchronized
    def cancel(self, reason: Optional[str], now: datetime) -> None:
        self._transition(PolicyStatus.CANCELED, now, reason)

    @_synchronized
    def record_payment_verdict(self, approved: bool, reason: Optional[str], now: datetime) -> None:
        self._record_verdict(VerdictChannel.PAYMENT, approved, reason, now)

    @_synchronized
    def record_subscription_verdict(self, approved: bool, reason: Optional[str], now: datetime) -> None:
        self._record_verdict(VerdictChannel.SUBSCRIPTION, approved, reason, now)

    def mark_persisted(self, version: int) -> None:
        """Called by the repository after a successful save"""
        with self._lock:
            self._version = version

    # -- internals ----------------------------------------------------------

    def _check_transition(self, target: PolicyStatus) -> None:
        if target not in TRANSITIONS.get(self._status, frozenset()):
            raise IllegalTransitionError(self._status, target)

    def _transition(self, target: PolicyStatus, now: datetime, reason: Optional[str] = None) -> None:
        self._check_transition(target)
        self._history.ensure_accepts(now)

        self._status = target
        if target.is_terminal:
            self._finished_at = now
        self._history.append(HistoryEntry(target, now, reason))

    def _record_verdict(self, channel: VerdictChannel, approved: bool, reason: Optional[str], now: datetime) -> None:
        # Flag first: a redelivered verdict is a duplicate whatever the status is now
        if self._verdicts[channel].received:
            raise DuplicateVerdictError(channel)

        target = PolicyStatus.APPROVED if approved else PolicyStatus.REJECTED
        if self._status is not PolicyStatus.PENDING:
            raise IllegalTransitionError(self._status, target, f"{channel.label} verdict requires PENDING")
        self._history.ensure_accepts(now)

        self._verdicts[channel] = VerdictSlot(
            received=True,
            confirmed=bool(approved),
            rejection_reason=None if approved else (reason or MISSING_REASON),
        )

        if not self.awaiting_verdicts:
            self._reconcile(now)

    def _reconcile(self, now: datetime) -> None:
        rejections = [
            f"{channel.label} rejected: {self._verdicts[channel].rejection_reason}"
            for channel in VerdictChannel
            if not self._verdicts[channel].confirmed
        ]
        if rejections:
            self._transition(PolicyStatus.REJECTED, now, "; ".join(rejections))
        else:
            self._transition(PolicyStatus.APPROVED, now)

    def __repr__(self) -> str:
        return f"PolicyProposal(id={self._id}, status={self._status.value}, category={self._category.value})"

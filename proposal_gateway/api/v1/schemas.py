"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from proposal_gateway.domain.enums import (
    Category,
    PaymentMethod,
    PolicyStatus,
    RiskTier,
    SalesChannel,
    VerdictChannel,
)
from proposal_gateway.domain.models import Money
from proposal_gateway.domain.proposal import PolicyProposal

# Matches the Numeric(18, 2) amount columns
Amount = Annotated[Decimal, Field(ge=0, max_digits=18, decimal_places=2)]


class CreateProposalRequest(BaseModel):
    """Request body for POST /v1/proposals"""

    customer_id: UUID = Field(..., description="Customer identifier")
    product_id: str = Field(..., min_length=1, description="Insurance product identifier")
    category: Category
    sales_channel: SalesChannel
    payment_method: PaymentMethod
    total_monthly_premium_amount: Amount = Field(..., description="Monthly premium paid by the insured")
    insured_amount: Amount = Field(..., description="Maximum amount the insurer will pay")
    currency: Optional[str] = Field(None, min_length=3, max_length=3, description="ISO currency code")
    coverages: Dict[str, Amount] = Field(..., min_length=1, description="Coverage name to covered amount")
    assistances: List[str] = Field(..., min_length=1, description="Assistance services included")


class CancelProposalRequest(BaseModel):
    """Request body for POST /v1/proposals/{id}/cancel"""

    reason: str = Field(..., min_length=1, max_length=500)


class VerdictRequest(BaseModel):
    """Request body for the payment and subscription verdict endpoints"""

    approved: bool
    reason: Optional[str] = Field(None, max_length=500, description="Rejection reason when not approved")


class MoneySchema(BaseModel):
    amount: Decimal
    currency: str

    @classmethod
    def from_domain(cls, money: Money) -> "MoneySchema":
        return cls(amount=money.amount, currency=money.currency)


class HistoryItem(BaseModel):
    """Single status change in a proposal's history"""

    status: PolicyStatus
    timestamp: datetime
    reason: Optional[str] = None


class VerdictSchema(BaseModel):
    received: bool
    confirmed: bool
    rejection_reason: Optional[str] = None


class ProposalResponse(BaseModel):
    """Full view of a proposal, including its audit trail"""

    proposal_id: str
    customer_id: str
    product_id: str
    category: Category
    sales_channel: SalesChannel
    payment_method: PaymentMethod
    total_monthly_premium_amount: MoneySchema
    insured_amount: MoneySchema
    coverages: Dict[str, MoneySchema]
    assistances: List[str]
    status: PolicyStatus
    created_at: datetime
    finished_at: Optional[datetime] = None
    payment: VerdictSchema
    subscription: VerdictSchema
    history: List[HistoryItem]

    @classmethod
    def from_domain(cls, proposal: PolicyProposal) -> "ProposalResponse":
        return cls(
            proposal_id=str(proposal.id),
            customer_id=str(proposal.customer_id),
            product_id=proposal.product_id,
            category=proposal.category,
            sales_channel=proposal.sales_channel,
            payment_method=proposal.payment_method,
            total_monthly_premium_amount=MoneySchema.from_domain(proposal.monthly_premium),
            insured_amount=MoneySchema.from_domain(proposal.insured_amount),
            coverages={name: MoneySchema.from_domain(money) for name, money in proposal.coverages.items()},
            assistances=list(proposal.assistances),
            status=proposal.status,
            created_at=proposal.created_at,
            finished_at=proposal.finished_at,
            payment=VerdictSchema(
                received=proposal.payment.received,
                confirmed=proposal.payment.confirmed,
                rejection_reason=proposal.payment.rejection_reason,
            ),
            subscription=VerdictSchema(
                received=proposal.subscription.received,
                confirmed=proposal.subscription.confirmed,
                rejection_reason=proposal.subscription.rejection_reason,
            ),
            history=[
                HistoryItem(status=entry.status, timestamp=entry.timestamp, reason=entry.reason)
                for entry in proposal.history
            ],
        )


class ProposalListResponse(BaseModel):
    """Response for GET /v1/proposals"""

    customer_id: str
    proposals: List[ProposalResponse]


class UnderwritingResponse(BaseModel):
    """Response for POST /v1/proposals/{id}/underwrite"""

    proposal_id: str
    status: PolicyStatus
    risk_tier: RiskTier
    accepted: bool
    reason: Optional[str] = None
    occurrences: int = 0


class VerdictResponse(BaseModel):
    """Acknowledgement of a payment or subscription verdict"""

    proposal_id: str
    channel: VerdictChannel
    status: PolicyStatus
    duplicate: bool = False
    awaiting: List[VerdictChannel] = []

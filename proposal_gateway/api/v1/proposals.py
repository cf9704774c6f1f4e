"""Proposal intake, lookup, underwriting and cancellation endpoints"""

import uuid
import logging
from datetime import datetime
from typing import Callable
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from proposal_gateway.api.dependencies import (
    get_clock,
    get_event_client,
    get_request_id,
    get_risk_client,
    parse_proposal_id,
)
from proposal_gateway.api.v1.common import CONFLICT_ERRORS, load_proposal, report_transition
from proposal_gateway.api.v1.schemas import (
    CancelProposalRequest,
    CreateProposalRequest,
    ProposalListResponse,
    ProposalResponse,
    UnderwritingResponse,
)
from proposal_gateway.config import settings
from proposal_gateway.domain.exceptions import InvalidAmountError, InvalidIntakeError, RiskServiceError
from proposal_gateway.domain.models import Money
from proposal_gateway.domain.proposal import PolicyProposal
from proposal_gateway.infrastructure.clients.events import DecisionEventClient
from proposal_gateway.infrastructure.clients.risk import RiskClient
from proposal_gateway.infrastructure.database.repositories import ProposalRepository
from proposal_gateway.infrastructure.database.session import get_db
from proposal_gateway.infrastructure.observability.metrics import (
    proposal_created_counter,
    record_underwriting,
    risk_fetch_failures_counter,
)

router = APIRouter()


@router.post("/proposals", response_model=ProposalResponse, status_code=201)
def create_proposal(
    request_body: CreateProposalRequest,
    request: Request,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Intake a new policy proposal.

    The proposal starts in RECEIVED with a single history entry. All amounts
    share the request currency (service default when omitted).
    """
    request_id = get_request_id(request)
    currency = (request_body.currency or settings.default_currency).upper()

    try:
        proposal = PolicyProposal.create(
            customer_id=request_body.customer_id,
            product_id=request_body.product_id,
            category=request_body.category,
            sales_channel=request_body.sales_channel,
            payment_method=request_body.payment_method,
            monthly_premium=Money(request_body.total_monthly_premium_amount, currency),
            insured_amount=Money(request_body.insured_amount, currency),
            coverages={name: Money(amount, currency) for name, amount in request_body.coverages.items()},
            assistances=request_body.assistances,
            now=clock(),
        )
        ProposalRepository(db).add(proposal)
        db.commit()

    except (InvalidIntakeError, InvalidAmountError) as e:
        db.rollback()
        logging.warning(f"Invalid intake: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    proposal_created_counter.labels(category=proposal.category.value).inc()
    logging.info(
        "Proposal received",
        extra={
            "request_id": request_id,
            "proposal_id": str(proposal.id),
            "customer_id": str(proposal.customer_id),
            "step": "intake",
        },
    )
    return ProposalResponse.from_domain(proposal)


@router.get("/proposals", response_model=ProposalListResponse)
def list_proposals(
    customer_id: uuid.UUID = Query(..., description="Customer identifier"),
    limit: int = Query(settings.history_default_limit, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Retrieve a customer's most recent proposals"""
    proposals = ProposalRepository(db).list_by_customer(customer_id, limit=limit)
    return ProposalListResponse(
        customer_id=str(customer_id),
        proposals=[ProposalResponse.from_domain(p) for p in proposals],
    )


@router.get("/proposals/{proposal_id}", response_model=ProposalResponse)
def get_proposal(proposal_id: str, db: Session = Depends(get_db)):
    """Retrieve a proposal with its full status history"""
    proposal = load_proposal(ProposalRepository(db), parse_proposal_id(proposal_id))
    return ProposalResponse.from_domain(proposal)


@router.post("/proposals/{proposal_id}/underwrite", response_model=UnderwritingResponse)
async def underwrite_proposal(
    proposal_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    risk_client: RiskClient = Depends(get_risk_client),
    event_client: DecisionEventClient = Depends(get_event_client),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Run a received proposal through underwriting.

    Flow:
    1. Fetch the customer's risk classification from the risk API
    2. Check the insured amount against the tier/category limit matrix
    3. Accepted proposals move to PENDING to await payment and subscription
       verdicts; rejected ones are final
    4. Persist with an optimistic version check
    """
    request_id = get_request_id(request)
    pid = parse_proposal_id(proposal_id)

    try:
        repo = ProposalRepository(db)
        proposal = load_proposal(repo, pid)
        previous_status = proposal.status

        assessment = await risk_client.get_assessment(proposal.id, proposal.customer_id, proposal.product_id)

        now = clock()
        result = proposal.validate(assessment.classification, now)
        if result.accepted:
            proposal.mark_as_pending(now)

        repo.save(proposal)
        db.commit()

    except HTTPException:
        raise

    except RiskServiceError as e:
        risk_fetch_failures_counter.inc()
        db.rollback()
        logging.error(f"Risk API error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Risk service unavailable")

    except CONFLICT_ERRORS as e:
        db.rollback()
        logging.warning(f"Underwriting conflict: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    record_underwriting(assessment.classification.value, result.accepted)
    report_transition(request_id, proposal, previous_status, background_tasks, event_client)

    return UnderwritingResponse(
        proposal_id=str(proposal.id),
        status=proposal.status,
        risk_tier=assessment.classification,
        accepted=result.accepted,
        reason=result.reason,
        occurrences=len(assessment.occurrences),
    )


@router.post("/proposals/{proposal_id}/cancel", response_model=ProposalResponse)
def cancel_proposal(
    proposal_id: str,
    request_body: CancelProposalRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    event_client: DecisionEventClient = Depends(get_event_client),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Cancel a proposal that has not reached a final status"""
    request_id = get_request_id(request)
    pid = parse_proposal_id(proposal_id)

    try:
        repo = ProposalRepository(db)
        proposal = load_proposal(repo, pid, for_update=True)
        previous_status = proposal.status

        proposal.cancel(request_body.reason, clock())
        repo.save(proposal)
        db.commit()

    except HTTPException:
        raise

    except CONFLICT_ERRORS as e:
        db.rollback()
        logging.warning(f"Cancellation refused: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    report_transition(request_id, proposal, previous_status, background_tasks, event_client)
    return ProposalResponse.from_domain(proposal)

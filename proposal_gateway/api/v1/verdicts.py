"""Payment and subscription verdict endpoints

Both verdicts may arrive in any order and are each accepted once. A
redelivered verdict is acknowledged with ``duplicate: true`` and leaves the
proposal untouched, so at-least-once delivery from the providers is safe.
"""

import logging
from datetime import datetime
from typing import Callable
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from proposal_gateway.api.dependencies import get_clock, get_event_client, get_request_id, parse_proposal_id
from proposal_gateway.api.v1.common import CONFLICT_ERRORS, load_proposal, report_transition
from proposal_gateway.api.v1.schemas import VerdictRequest, VerdictResponse
from proposal_gateway.domain.enums import VerdictChannel
from proposal_gateway.domain.exceptions import DuplicateVerdictError
from proposal_gateway.infrastructure.clients.events import DecisionEventClient
from proposal_gateway.infrastructure.database.repositories import ProposalRepository
from proposal_gateway.infrastructure.database.session import get_db
from proposal_gateway.infrastructure.observability.logging import log_verdict
from proposal_gateway.infrastructure.observability.metrics import duplicate_verdict_counter, record_verdict

router = APIRouter()


def _handle_verdict(
    channel: VerdictChannel,
    proposal_id: str,
    request_body: VerdictRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session,
    event_client: DecisionEventClient,
    clock: Callable[[], datetime],
) -> VerdictResponse:
    request_id = get_request_id(request)
    pid = parse_proposal_id(proposal_id)

    try:
        repo = ProposalRepository(db)
        proposal = load_proposal(repo, pid, for_update=True)
        previous_status = proposal.status

        if channel is VerdictChannel.PAYMENT:
            proposal.record_payment_verdict(request_body.approved, request_body.reason, clock())
        else:
            proposal.record_subscription_verdict(request_body.approved, request_body.reason, clock())

        repo.save(proposal)
        db.commit()

    except HTTPException:
        raise

    except DuplicateVerdictError:
        db.rollback()
        duplicate_verdict_counter.labels(channel=channel.value.lower()).inc()
        log_verdict(request_id, str(pid), channel.value, request_body.approved, proposal.status.value, duplicate=True)
        return VerdictResponse(
            proposal_id=str(proposal.id),
            channel=channel,
            status=proposal.status,
            duplicate=True,
            awaiting=list(proposal.awaiting_verdicts),
        )

    except CONFLICT_ERRORS as e:
        db.rollback()
        logging.warning(f"{channel.label} verdict refused: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    record_verdict(channel.value, request_body.approved)
    log_verdict(request_id, str(proposal.id), channel.value, request_body.approved, proposal.status.value)
    report_transition(request_id, proposal, previous_status, background_tasks, event_client)

    return VerdictResponse(
        proposal_id=str(proposal.id),
        channel=channel,
        status=proposal.status,
        awaiting=list(proposal.awaiting_verdicts),
    )


@router.post("/proposals/{proposal_id}/payment-verdict", response_model=VerdictResponse)
def record_payment_verdict(
    proposal_id: str,
    request_body: VerdictRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    event_client: DecisionEventClient = Depends(get_event_client),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Record the payment authorization outcome for a pending proposal"""
    return _handle_verdict(
        VerdictChannel.PAYMENT, proposal_id, request_body, background_tasks, request, db, event_client, clock
    )


@router.post("/proposals/{proposal_id}/subscription-verdict", response_model=VerdictResponse)
def record_subscription_verdict(
    proposal_id: str,
    request_body: VerdictRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    event_client: DecisionEventClient = Depends(get_event_client),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Record the insurance subscription authorization outcome for a pending proposal"""
    return _handle_verdict(
        VerdictChannel.SUBSCRIPTION, proposal_id, request_body, background_tasks, request, db, event_client, clock
    )

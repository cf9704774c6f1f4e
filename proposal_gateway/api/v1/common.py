"""Helpers shared by the proposal and verdict endpoints"""

import uuid
from fastapi import BackgroundTasks, HTTPException

from proposal_gateway.domain.enums import PolicyStatus
from proposal_gateway.domain.exceptions import (
    ConcurrencyConflictError,
    HistoryOrderError,
    IllegalTransitionError,
    ProposalNotFoundError,
)
from proposal_gateway.domain.proposal import PolicyProposal
from proposal_gateway.infrastructure.clients.events import DecisionEventClient, build_decision_event
from proposal_gateway.infrastructure.database.repositories import ProposalRepository
from proposal_gateway.infrastructure.observability.logging import log_transition
from proposal_gateway.infrastructure.observability.metrics import record_decision

# Errors that mean the request conflicts with the proposal's current state
CONFLICT_ERRORS = (IllegalTransitionError, HistoryOrderError, ConcurrencyConflictError)


def load_proposal(repo: ProposalRepository, proposal_id: uuid.UUID, for_update: bool = False) -> PolicyProposal:
    try:
        return repo.require(proposal_id, for_update=for_update)
    except ProposalNotFoundError:
        raise HTTPException(status_code=404, detail="Proposal not found")


def report_transition(
    request_id: str,
    proposal: PolicyProposal,
    previous_status: PolicyStatus,
    background_tasks: BackgroundTasks,
    event_client: DecisionEventClient,
) -> None:
    """Log, count and publish a committed status change"""
    if proposal.status is previous_status:
        return

    log_transition(
        request_id,
        str(proposal.id),
        previous_status.value,
        proposal.status.value,
        proposal.history[-1].reason,
    )

    if proposal.status.is_terminal:
        record_decision(proposal.status.value)
        background_tasks.add_task(event_client.send_event, build_decision_event(proposal))

"""Dependency injection for FastAPI endpoints"""

import uuid
from datetime import datetime
from typing import Callable

from fastapi import HTTPException, Request

from proposal_gateway.infrastructure.clients.events import DecisionEventClient
from proposal_gateway.infrastructure.clients.risk import RiskClient
from proposal_gateway.utils.date_utils import utc_now


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_risk_client() -> RiskClient:
    """Provide risk API client instance"""
    return RiskClient()


def get_event_client() -> DecisionEventClient:
    """Provide decision webhook client instance"""
    return DecisionEventClient()


def get_clock() -> Callable[[], datetime]:
    """Source of the current time for lifecycle transitions"""
    return utc_now


def parse_proposal_id(proposal_id: str) -> uuid.UUID:
    """Path parameter parser; malformed ids are a client error"""
    try:
        return uuid.UUID(proposal_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid proposal ID format")

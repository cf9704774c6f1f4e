"""Decision event webhook client with exponential backoff retry logic"""

import httpx
import asyncio
import logging
from typing import Any, Dict, Optional
from proposal_gateway.config import settings
from proposal_gateway.domain.enums import PolicyStatus
from proposal_gateway.domain.proposal import PolicyProposal
from proposal_gateway.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter

logger = logging.getLogger(__name__)

EVENT_TYPES = {
    PolicyStatus.APPROVED: "POLICY_APPROVED",
    PolicyStatus.REJECTED: "POLICY_REJECTED",
    PolicyStatus.CANCELED: "POLICY_CANCELED",
}


def build_decision_event(proposal: PolicyProposal) -> Dict[str, Any]:
    """Payload announcing a proposal's terminal status"""
    if proposal.status not in EVENT_TYPES:
        raise ValueError(f"Proposal {proposal.id} is not terminal: {proposal.status.value}")

    last_entry = proposal.history[-1]
    return {
        "event": EVENT_TYPES[proposal.status],
        "proposal_id": str(proposal.id),
        "customer_id": str(proposal.customer_id),
        "category": proposal.category.value,
        "status": proposal.status.value,
        "reason": last_entry.reason,
        "finished_at": proposal.finished_at.isoformat(),
    }


class DecisionEventClient:
    """Client for publishing terminal proposal decisions to downstream consumers"""

    def __init__(
        self,
        webhook_url: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url or settings.decision_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.transport = transport

    async def send_event(self, payload: Dict[str, Any]) -> None:
        """
        Send a decision event with retry logic.

        Retry strategy:
        - Exponential backoff: base * 2^(attempt-1), i.e. 1s, 2s, 4s, 8s
        - Retries on HTTP errors and network failures
        - Tracks latency histogram and failure counter

        Raises the last error once max_retries attempts have failed.
        """
        attempt = 0
        async with httpx.AsyncClient(transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=payload,
                            timeout=settings.http_timeout_seconds,
                        )
                        response.raise_for_status()
                        return

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            f"Decision event delivery failed after {attempt} attempts: {e}",
                            extra={"proposal_id": payload.get("proposal_id"), "event": payload.get("event")},
                        )
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)

"""Risk API HTTP client for fetching a customer's risk classification"""

import uuid
import httpx
from datetime import datetime
from typing import Optional
from proposal_gateway.domain.enums import OccurrenceType, RiskTier
from proposal_gateway.domain.models import RiskAssessment, RiskOccurrence
from proposal_gateway.domain.exceptions import RiskServiceError
from proposal_gateway.config import settings


class RiskClient:
    """Client for the external fraud/risk classification API"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.risk_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def get_assessment(
        self,
        proposal_id: uuid.UUID,
        customer_id: uuid.UUID,
        product_id: str,
    ) -> RiskAssessment:
        """
        Fetch the risk classification for a proposal's customer.

        Raises:
            RiskServiceError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/risk/assessment",
                    params={
                        "order_id": str(proposal_id),
                        "customer_id": str(customer_id),
                        "product_id": product_id,
                    },
                )
                response.raise_for_status()
                data = response.json()

                return RiskAssessment(
                    proposal_id=uuid.UUID(data["order_id"]),
                    customer_id=uuid.UUID(data["customer_id"]),
                    analyzed_at=datetime.fromisoformat(data["analyzed_at"]),
                    classification=RiskTier(data["classification"]),
                    occurrences=tuple(
                        RiskOccurrence(
                            occurrence_id=occ["id"],
                            product_id=occ["product_id"],
                            type=OccurrenceType(occ["type"]),
                            description=occ["description"],
                            created_at=datetime.fromisoformat(occ["created_at"]),
                            updated_at=datetime.fromisoformat(occ["updated_at"]),
                        )
                        for occ in data.get("occurrences", [])
                    ),
                )

            except httpx.TimeoutException as e:
                raise RiskServiceError(f"Risk API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise RiskServiceError(f"Risk API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise RiskServiceError(f"Risk API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise RiskServiceError(f"Invalid assessment data from risk API: {e}") from e

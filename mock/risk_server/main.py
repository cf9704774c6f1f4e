from datetime import datetime, timedelta, timezone
from fastapi import FastAPI, HTTPException
from pathlib import Path
import json
import os
import uuid

app = FastAPI(title="Mock Risk Server", version="1.0.0")
# Support both local development and Docker
DATA_DIR = Path("/risk_stub") if os.path.exists("/risk_stub") else Path(__file__).resolve().parents[2] / "risk_stub"

TIERS = ["REGULAR", "HIGH_RISK", "PREFERENTIAL", "NO_INFORMATION"]


def classify(customer_id: uuid.UUID) -> str:
    """Fixture file wins; otherwise a stable bucket of the customer id"""
    file = DATA_DIR / f"classification_{customer_id}.json"
    if file.exists():
        return json.loads(file.read_text())["classification"]
    return TIERS[customer_id.int % len(TIERS)]


def occurrence(product_id: str, kind: str, description: str, age: timedelta) -> dict:
    created = (datetime.now(timezone.utc) - age).isoformat()
    return {
        "id": str(uuid.uuid4()),
        "product_id": product_id,
        "type": kind,
        "description": description,
        "created_at": created,
        "updated_at": created,
    }


@app.get("/health")
def health(): return {"status": "ok"}


@app.get("/risk/assessment")
def get_assessment(order_id: str, customer_id: str, product_id: str):
    try:
        order_uuid, customer_uuid = uuid.UUID(order_id), uuid.UUID(customer_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="order_id and customer_id must be UUIDs")

    classification = classify(customer_uuid)
    occurrences = []
    if classification == "HIGH_RISK":
        occurrences.append(occurrence(product_id, "FRAUD", "Attempted fraudulent transaction detected", timedelta(days=1)))
        occurrences.append(occurrence(product_id, "SUSPICION", "Unusual activity flagged for review", timedelta(days=2)))
    elif classification == "NO_INFORMATION":
        occurrences.append(occurrence(product_id, "SUSPICION", "Customer has limited history with the insurer", timedelta(days=3)))

    return {
        "order_id": str(order_uuid),
        "customer_id": str(customer_uuid),
        "analyzed_at": datetime.now(timezone.utc).isoformat(),
        "classification": classification,
        "occurrences": occurrences,
    }

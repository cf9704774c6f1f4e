"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from proposal_gateway.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_transition(
    request_id: str,
    proposal_id: str,
    from_status: str,
    to_status: str,
    reason: Optional[str] = None,
) -> None:
    """Log a proposal status change for audit analysis"""
    logging.info(
        "Proposal status changed",
        extra={
            "request_id": request_id,
            "proposal_id": proposal_id,
            "step": "status_transition",
            "from_status": from_status,
            "to_status": to_status,
            "reason": reason,
        },
    )


def log_verdict(
    request_id: str,
    proposal_id: str,
    channel: str,
    approved: bool,
    status: str,
    duplicate: bool = False,
) -> None:
    """Log an external payment/subscription verdict"""
    logging.info(
        "Verdict recorded" if not duplicate else "Duplicate verdict ignored",
        extra={
            "request_id": request_id,
            "proposal_id": proposal_id,
            "step": "verdict",
            "channel": channel,
            "verdict": "approved" if approved else "rejected",
            "status": status,
            "duplicate": duplicate,
        },
    )

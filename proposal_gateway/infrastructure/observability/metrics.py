"""Prometheus metrics for monitoring intake, underwriting, verdicts and webhook performance"""

from prometheus_client import Counter, Histogram

# Proposal metrics
proposal_created_counter = Counter(
    "proposal_created_total",
    "Proposals received at intake",
    ["category"],
)

underwriting_counter = Counter(
    "proposal_underwriting_total",
    "Underwriting limit checks",
    ["tier", "outcome"],  # validated | rejected
)

decision_counter = Counter(
    "proposal_decision_total",
    "Proposals reaching a terminal status",
    ["outcome"],  # approved | rejected | canceled
)

verdict_counter = Counter(
    "proposal_verdict_total",
    "External verdicts recorded",
    ["channel", "outcome"],
)

duplicate_verdict_counter = Counter(
    "proposal_duplicate_verdict_total",
    "Redelivered verdicts acknowledged without effect",
    ["channel"],
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Decision webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Risk API metrics
risk_fetch_failures_counter = Counter(
    "risk_fetch_failures_total",
    "Failed risk API calls",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_decision(status: str) -> None:
    """Count a proposal that just reached a terminal status"""
    decision_counter.labels(outcome=status.lower()).inc()


def record_underwriting(tier: str, accepted: bool) -> None:
    outcome = "validated" if accepted else "rejected"
    underwriting_counter.labels(tier=tier, outcome=outcome).inc()


def record_verdict(channel: str, approved: bool) -> None:
    outcome = "approved" if approved else "rejected"
    verdict_counter.labels(channel=channel.lower(), outcome=outcome).inc()

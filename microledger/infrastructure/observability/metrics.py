"""Prometheus metrics for monitoring collections, reversals and ledger contention"""

from prometheus_client import Counter, Histogram

# Payment metrics
payment_counter = Counter(
    "microledger_payment_total",
    "Installment payment attempts",
    ["outcome"],  # paid | conflict | rejected
)

collected_cents_counter = Counter(
    "microledger_collected_cents_total",
    "Cents recorded against installments",
)

reversal_counter = Counter(
    "microledger_reversal_total",
    "Installments reversed from PAID to PENDING",
)

# Guard metrics
loan_deletion_counter = Counter(
    "microledger_loan_deletion_total",
    "Loan deletion attempts",
    ["outcome"],  # deleted | conflict
)

ledger_conflict_counter = Counter(
    "microledger_conflict_total",
    "Concurrent writes that lost a race on an installment",
)

# Overdue sweep
sweep_transition_counter = Counter(
    "microledger_overdue_transition_total",
    "Installments moved from PENDING to OVERDUE by the sweep",
)

sweep_duration_histogram = Histogram(
    "microledger_overdue_sweep_seconds",
    "Overdue sweep duration",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(outcome: str, amount_cents: int = 0) -> None:
    """Record payment outcome, and collected volume for successful payments"""
    payment_counter.labels(outcome=outcome).inc()
    if outcome == "paid":
        collected_cents_counter.inc(amount_cents)

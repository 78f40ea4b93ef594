"""Prometheus counters for the notification pipeline (served on /metrics)."""

from prometheus_client import Counter

JOBS_ENQUEUED = Counter(
    "waste_reminder_jobs_enqueued_total",
    "Delivery jobs emitted by the matcher",
)
MATCHER_RUNS = Counter(
    "waste_reminder_matcher_runs_total",
    "Matcher ticks by outcome",
    ["outcome"],
)
DELIVERY_OUTCOMES = Counter(
    "waste_reminder_delivery_outcomes_total",
    "Queue messages handled by the delivery worker, by outcome",
    ["outcome"],
)

"""
Prometheus metrics for the payout pipeline.

Metrics exposed:
- HTTP request counters and latency histograms
- Payout outcomes per status
- Reconciliation sweep outcomes and repaired gaps
- Reconciliation scheduler state
"""
from prometheus_client import Counter, Gauge, Histogram

# HTTP Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"]
)

# Payout Metrics
payouts_total = Counter(
    "payouts_total",
    "Winner payouts by outcome",
    ["status"]
)

payout_attempts_total = Counter(
    "payout_attempts_total",
    "Individual payout attempts, including retries"
)

# Reconciliation Metrics
reconciliation_runs_total = Counter(
    "reconciliation_runs_total",
    "Reconciliation sweeps by outcome",
    ["outcome"]
)

reconciliation_gaps_fixed_total = Counter(
    "reconciliation_gaps_fixed_total",
    "Missing contest_win transactions created by the sweep"
)

reconciliation_scheduler_running = Gauge(
    "reconciliation_scheduler_running",
    "Whether the reconciliation scheduler is running (1) or stopped (0)"
)

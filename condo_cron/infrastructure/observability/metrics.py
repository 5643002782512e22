"""Prometheus metrics for job runs, payment reconciliation and notification dispatch"""

from prometheus_client import Counter, Histogram, Gauge

# Job metrics
job_runs_counter = Counter(
    "condo_cron_job_runs_total",
    "Scheduled job executions",
    ["job", "status"],  # ok | error
)

job_duration_histogram = Histogram(
    "condo_cron_job_duration_seconds",
    "Scheduled job duration",
    ["job"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

# Payment reconciliation metrics
payment_transition_counter = Counter(
    "condo_cron_payment_transitions_total",
    "Payment state transitions applied by reconciliation",
    ["status"],  # paid | failed | cancelled | expired
)

unmapped_provider_status_counter = Counter(
    "condo_cron_provider_unmapped_status_total",
    "Provider statuses with no internal mapping",
    ["provider_status"],
)

provider_error_counter = Counter(
    "condo_cron_provider_errors_total",
    "Failed payment provider calls",
)

provider_latency_histogram = Histogram(
    "condo_cron_provider_latency_seconds",
    "Payment provider response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Notification metrics
notification_counter = Counter(
    "condo_cron_notifications_total",
    "Notification delivery attempts",
    ["channel", "outcome"],  # sent | retry | failed
)

# Dependency health
dependency_up_gauge = Gauge(
    "condo_cron_dependency_up",
    "1 when the dependency is ok or intentionally not configured, 0 on error",
    ["dependency"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_job(job: str, status: str, duration_seconds: float) -> None:
    """Record job outcome and duration"""
    job_runs_counter.labels(job=job, status=status).inc()
    job_duration_histogram.labels(job=job).observe(duration_seconds)


def record_dependency(dependency: str, status: str) -> None:
    dependency_up_gauge.labels(dependency=dependency).set(0 if status == "error" else 1)

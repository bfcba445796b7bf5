"""Prometheus metrics configuration."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)

from coordinator.config import ObservabilitySettings


# Application info
APP_INFO = Info("coordinator", "Deployment Coordinator application info")
APP_INFO.info({
    "version": "1.0.0",
    "service": "production-deployment-coordinator",
})

# Execution metrics
EXECUTIONS_TOTAL = Counter(
    "coordinator_executions_total",
    "Total number of finished deployment executions",
    ["status", "environment", "dry_run"],
)

EXECUTION_DURATION = Histogram(
    "coordinator_execution_duration_seconds",
    "Wall-clock duration of completed deployment executions",
    ["environment"],
    buckets=[1, 10, 30, 60, 300, 900, 1800, 3600],
)

ACTIVE_EXECUTIONS = Gauge(
    "coordinator_active_executions",
    "Number of deployment executions currently in flight",
)

EXECUTIONS_REFUSED = Counter(
    "coordinator_executions_refused_total",
    "Executions refused by a gate before any state was created",
    ["gate"],  # "approvals", "readiness", "lock"
)

# Phase and task metrics
PHASES_TOTAL = Counter(
    "coordinator_phases_total",
    "Total number of phases run",
    ["phase_type", "status"],
)

TASKS_TOTAL = Counter(
    "coordinator_tasks_total",
    "Total number of tasks dispatched",
    ["task_type", "status"],
)

VALIDATIONS_TOTAL = Counter(
    "coordinator_validation_checks_total",
    "Total number of validation checks run",
    ["status"],
)

# Rollback metrics
ROLLBACKS_TOTAL = Counter(
    "coordinator_rollbacks_total",
    "Total number of rollbacks",
    ["trigger", "result"],  # trigger: automatic/manual, result: completed/failed
)

ROLLBACK_DURATION = Histogram(
    "coordinator_rollback_duration_seconds",
    "Time taken for rollback execution",
    buckets=[1, 5, 30, 60, 300, 1200],
)

# Infrastructure metrics
STORE_OPERATIONS_TOTAL = Counter(
    "coordinator_store_operations_total",
    "Total key-value store operations",
    ["operation", "result"],
)

EVENT_PUBLISH_FAILURES = Counter(
    "coordinator_event_publish_failures_total",
    "Events that could not be delivered to the publisher",
    ["event_type"],
)


def setup_metrics(settings: ObservabilitySettings) -> bool:
    """Expose the default registry over HTTP when enabled and a port is set."""
    if not settings.metrics_enabled or settings.metrics_port is None:
        return False
    start_http_server(settings.metrics_port)
    return True

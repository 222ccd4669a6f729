"""
Prometheus metrics for the reconciler.
"""
import logging

from prometheus_client import Counter, start_http_server

logger = logging.getLogger("visitors_operator.metrics")

RECONCILE_PASSES = Counter(
    "visitors_operator_reconcile_passes_total",
    "Reconciliation passes by outcome",
    ["outcome"],
)
CHILDREN_CREATED = Counter(
    "visitors_operator_children_created_total",
    "Child objects created by the reconciler",
    ["kind", "tier"],
)
DRIFT_CORRECTIONS = Counter(
    "visitors_operator_drift_corrections_total",
    "Single-field drift corrections applied",
    ["tier", "field"],
)

_exporter_started = False


def start_exporter(port: int):
    """Expose /metrics on the given port. No-op for port 0 or when already running."""
    global _exporter_started
    if _exporter_started or not port:
        return
    start_http_server(port)
    _exporter_started = True
    logger.info(f"Prometheus exporter listening on :{port}")

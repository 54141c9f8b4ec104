"""Prometheus metrics for causal search runs."""

from __future__ import annotations

import threading

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

from shared.config import CausalSearchConfig, get_search_config


class CausalSearchMetrics:
    """Metrics collection for adjacency search and stability selection."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()

        # Search metrics
        self.search_duration = Histogram(
            "causal_search_duration_seconds",
            "Duration of causal search runs",
            ["algorithm", "status"],
            registry=self.registry,
        )

        self.search_count = Counter(
            "causal_search_runs_total",
            "Total number of causal search runs",
            ["algorithm", "status"],
            registry=self.registry,
        )

        # Statistical work
        self.independence_tests = Counter(
            "causal_search_independence_tests_total",
            "Conditional independence tests executed",
            ["outcome"],
            registry=self.registry,
        )

        self.edges_removed = Counter(
            "causal_search_edges_removed_total",
            "Adjacencies removed by the FDR cutoff",
            registry=self.registry,
        )

        self.bootstrap_samples = Counter(
            "causal_search_bootstrap_samples_total",
            "Subsamples ranked by stability selection",
            registry=self.registry,
        )

        # Error metrics
        self.errors = Counter(
            "causal_search_errors_total",
            "Total errors",
            ["error_type", "component"],
            registry=self.registry,
        )

    def record_search(self, algorithm: str, duration: float, status: str) -> None:
        """Record a finished search run."""
        self.search_duration.labels(algorithm=algorithm, status=status).observe(
            duration
        )
        self.search_count.labels(algorithm=algorithm, status=status).inc()

    def record_independence_test(self, ok: bool) -> None:
        self.independence_tests.labels(outcome="ok" if ok else "failed").inc()

    def record_edges_removed(self, n_edges: int) -> None:
        if n_edges > 0:
            self.edges_removed.inc(n_edges)

    def record_bootstrap_sample(self) -> None:
        self.bootstrap_samples.inc()

    def record_error(self, error_type: str, component: str) -> None:
        """Record an error."""
        self.errors.labels(error_type=error_type, component=component).inc()


_metrics: CausalSearchMetrics | None = None
_metrics_lock = threading.Lock()
_exporter_port: int | None = None


def get_metrics() -> CausalSearchMetrics:
    """Process-wide metrics shared by every search."""
    global _metrics
    with _metrics_lock:
        if _metrics is None:
            _metrics = CausalSearchMetrics()
        return _metrics


def setup_metrics(config: CausalSearchConfig | None = None) -> bool:
    """Expose the process-wide registry over HTTP when metrics are enabled.

    Returns True if an exporter is serving after the call.
    """
    global _exporter_port
    if config is None:
        config = get_search_config()

    if not config.enable_metrics:
        return False
    if _exporter_port is None:
        start_http_server(config.metrics_port, registry=get_metrics().registry)
        _exporter_port = config.metrics_port
    return True

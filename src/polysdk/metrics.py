"""Prometheus collector for polyapi client activity.

Request counters are recorded in a thread-safe ``RequestStats`` object owned
by each data model client. ``PolySDKCollector`` reads the client on every
scrape, so nothing is registered globally unless the caller registers it.
"""

from collections.abc import Iterator
from threading import Lock

import structlog
from prometheus_client.core import (
    CollectorRegistry,
    CounterMetricFamily,
    GaugeMetricFamily,
)
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

logger = structlog.get_logger(__name__)


class RequestStats:
    """Thread-safe per-action request counters."""

    def __init__(self):
        self._lock = Lock()
        self._requests: dict[str, int] = {}
        self._errors: dict[str, int] = {}
        self._durations: dict[str, float] = {}

    def record(self, action: str, duration: float, failed: bool) -> None:
        """Record one finished request for ``action``."""
        with self._lock:
            self._requests[action] = self._requests.get(action, 0) + 1
            self._durations[action] = duration
            if failed:
                self._errors[action] = self._errors.get(action, 0) + 1

    def snapshot(self) -> tuple[dict[str, int], dict[str, int], dict[str, float]]:
        """Return copies of the (requests, errors, durations) maps."""
        with self._lock:
            return dict(self._requests), dict(self._errors), dict(self._durations)


class PolySDKCollector(Collector):
    """Expose a data model client's request stats as Prometheus metrics.

    Every metric carries the client's application id and model code, so
    collectors for several models can share one registry. The token refresh
    count comes from the client's credential, which may be shared with other
    clients.
    """

    def __init__(self, client):
        """Initialize the collector.

        Args:
            client: The ``QxDataModelClient`` to report on.
        """
        self._client = client
        self._labels = [client.app_id, client.model_code]

    def collect(self) -> Iterator[Metric]:
        """Yield request, error, duration and token refresh metrics."""
        requests, errors, durations = self._client.stats.snapshot()
        label_names = ["app_id", "model_code", "action"]

        request_total = CounterMetricFamily(
            "polysdk_request",
            "data model requests sent",
            labels=label_names,
        )
        for action, count in sorted(requests.items()):
            request_total.add_metric([*self._labels, action], count)
        yield request_total

        error_total = CounterMetricFamily(
            "polysdk_request_error",
            "data model requests that failed",
            labels=label_names,
        )
        for action in sorted(requests):
            error_total.add_metric([*self._labels, action], errors.get(action, 0))
        yield error_total

        # Last observed value only, not a histogram
        duration = GaugeMetricFamily(
            "polysdk_request_duration_seconds",
            "duration of the last data model request in seconds",
            labels=label_names,
        )
        for action, seconds in sorted(durations.items()):
            duration.add_metric([*self._labels, action], seconds)
        yield duration

        token_refresh = CounterMetricFamily(
            "polysdk_token_refresh",
            "login round trips performed by the client's credential",
            labels=["app_id", "model_code"],
        )
        token_refresh.add_metric(self._labels, self._client.credential.refresh_count)
        yield token_refresh


def create_registry(client) -> CollectorRegistry:
    """Create a private Prometheus registry for a data model client.

    Creates a custom registry (not the global one) so embedding applications
    decide where, and whether, the metrics are served.

    Args:
        client: The ``QxDataModelClient`` to report on.

    Returns:
        Registry with a ``PolySDKCollector`` registered.
    """
    registry = CollectorRegistry()
    registry.register(PolySDKCollector(client))
    logger.info(
        "Registered collector",
        app_id=client.app_id,
        model_code=client.model_code,
    )
    return registry

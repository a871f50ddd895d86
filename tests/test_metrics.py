"""Tests for request stats recording and the Prometheus collector."""

import prometheus_client
import pytest

from polysdk import metrics, polyapi

# ---------------------------------------------------------------------------
# RequestStats
# ---------------------------------------------------------------------------


def test_record_counts_requests_and_errors():
    stats = metrics.RequestStats()

    stats.record("get", 0.1, failed=False)
    stats.record("get", 0.2, failed=True)
    stats.record("search", 0.3, failed=False)

    requests, errors, durations = stats.snapshot()
    assert requests == {"get": 2, "search": 1}
    assert errors == {"get": 1}
    assert durations == {"get": 0.2, "search": 0.3}


def test_snapshot_is_a_copy():
    stats = metrics.RequestStats()
    stats.record("get", 0.1, failed=False)

    requests, _, _ = stats.snapshot()
    requests["get"] = 99

    assert stats.snapshot()[0] == {"get": 1}


# ---------------------------------------------------------------------------
# Collector wired to a real client
# ---------------------------------------------------------------------------


def test_collector_reports_client_activity(data_client, fake_service):
    """Successful and failed calls show up per action, with token refreshes."""
    data_client.create({"key": "a"})
    fake_service.queue("search", {"code": 1, "data": None, "msg": "boom"})
    with pytest.raises(polyapi.ServiceError):
        data_client.search()

    collected = {m.name: m for m in metrics.PolySDKCollector(data_client).collect()}

    requests = {s.labels["action"]: s.value for s in collected["polysdk_request"].samples if s.name.endswith("_total")}
    errors = {
        s.labels["action"]: s.value for s in collected["polysdk_request_error"].samples if s.name.endswith("_total")
    }
    assert requests == {"create": 1, "search": 1}
    assert errors == {"create": 0, "search": 1}
    assert collected["polysdk_token_refresh"].samples[0].value == 1


def test_collector_labels_carry_scope(data_client):
    data_client.search()

    collected = {m.name: m for m in metrics.PolySDKCollector(data_client).collect()}
    labels = collected["polysdk_request_duration_seconds"].samples[0].labels

    assert labels == {"app_id": data_client.app_id, "model_code": data_client.model_code, "action": "search"}


def test_collector_before_any_request(data_client):
    collected = {m.name: m for m in metrics.PolySDKCollector(data_client).collect()}

    assert collected["polysdk_request"].samples == []
    assert collected["polysdk_token_refresh"].samples[0].value == 0


def test_create_registry_exposition(data_client):
    data_client.search()

    registry = metrics.create_registry(data_client)
    scope = {"app_id": data_client.app_id, "model_code": data_client.model_code}

    assert registry.get_sample_value("polysdk_request_total", {**scope, "action": "search"}) == 1
    assert registry.get_sample_value("polysdk_request_error_total", {**scope, "action": "search"}) == 0
    assert registry.get_sample_value("polysdk_token_refresh_total", scope) == 1
    assert b"polysdk_request_total" in prometheus_client.generate_latest(registry)

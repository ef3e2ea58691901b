"""Test the request/lookup metrics collector."""

from datetime import datetime, timezone

from zipfill.lookup.models import Location, LookupFailure, LookupResult
from zipfill.observability.metrics import (
    MetricsCollector,
    format_uptime,
    hour_key,
    normalize_endpoint,
    percentile,
)

BASE = datetime(2025, 6, 1, 14, 30, tzinfo=timezone.utc).timestamp()


class FakeClock:
    def __init__(self, now: float = BASE) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _result(code: str, *states: str) -> LookupResult:
    return LookupResult(zip=code, locations=[Location(city=f"City{i}", state=s) for i, s in enumerate(states)])


def test_percentile_nearest_rank():
    samples = [10, 20, 30, 40, 50]
    assert percentile(samples, 50) == 30
    assert percentile(samples, 95) == 50
    assert percentile([50, 10, 40, 20, 30], 50) == 30
    assert percentile([7], 1) == 7


def test_percentile_empty_is_zero():
    assert percentile([], 50) == 0
    summary = MetricsCollector().summary()
    assert summary["responseTimes"] == {"avg": 0, "p50": 0, "p95": 0, "p99": 0}


def test_endpoint_normalization():
    assert normalize_endpoint("/api/lookup/90210") == "/api/lookup/:zip"
    assert normalize_endpoint("/api/lookup/10001") == "/api/lookup/:zip"
    assert normalize_endpoint("/api/lookup") == "/api/lookup"
    assert normalize_endpoint("/api/batch") == "/api/batch"
    assert normalize_endpoint("/no/such/path/123") == "/no/such/path/123"


def test_hour_key():
    assert hour_key(BASE) == "2025-06-01T14"


def test_format_uptime():
    assert format_uptime(5_000) == "5s"
    assert format_uptime(125_000) == "2m 5s"
    assert format_uptime((3 * 3600 + 7 * 60) * 1000) == "3h 7m"
    assert format_uptime((2 * 86400 + 5 * 3600) * 1000) == "2d 5h"


def test_record_request_counters():
    metrics = MetricsCollector(clock=FakeClock())
    metrics.record_request("GET", "/api/lookup/90210", 200, 4.0)
    metrics.record_request("GET", "/api/lookup/10001", 404, 2.0)
    metrics.record_request("POST", "/api/batch", 200, 9.0)

    assert metrics.request_count == 3
    assert dict(metrics.endpoint_counts) == {"/api/lookup/:zip": 2, "/api/batch": 1}
    assert dict(metrics.status_counts) == {200: 2, 404: 1}
    assert dict(metrics.method_counts) == {"GET": 2, "POST": 1}
    assert list(metrics.endpoint_latencies["/api/lookup/:zip"]) == [4.0, 2.0]
    assert metrics.hourly_requests == {"2025-06-01T14": 3}


def test_response_time_samples_are_bounded():
    metrics = MetricsCollector(clock=FakeClock())
    for i in range(1005):
        metrics.record_request("GET", "/health", 200, float(i))
    assert len(metrics.latencies) == 1000
    assert metrics.latencies[0] == 5.0
    assert len(metrics.endpoint_latencies["/health"]) == 100
    assert metrics.endpoint_latencies["/health"][0] == 905.0


def test_hourly_buckets_keep_seven_days():
    clock = FakeClock()
    metrics = MetricsCollector(clock=clock)
    for i in range(168):
        clock.now = BASE + i * 3600
        metrics.record_request("GET", "/health", 200, 1.0)
    assert len(metrics.hourly_requests) == 168
    oldest = hour_key(BASE)
    second = hour_key(BASE + 3600)
    assert oldest in metrics.hourly_requests

    clock.now = BASE + 168 * 3600
    metrics.record_request("GET", "/health", 200, 1.0)
    assert len(metrics.hourly_requests) == 168
    assert oldest not in metrics.hourly_requests
    assert second in metrics.hourly_requests
    assert metrics.hourly_requests[hour_key(clock.now)] == 1


def test_record_lookup_found_and_not_found():
    metrics = MetricsCollector()
    metrics.record_lookup("12345", _result("12345", "NY", "NJ"))
    metrics.record_lookup("90210", _result("90210", "CA"))
    metrics.record_lookup("90210", _result("90210", "CA"))
    metrics.record_lookup("00000", None)
    metrics.record_lookup("abc", LookupFailure(error="Invalid zip code format", zip="abc"))

    assert metrics.lookup_count == 5
    assert metrics.found_count == 3
    assert metrics.not_found_count == 2
    assert metrics.zip_counts == {"12345": 1, "90210": 2}
    # Only the first location's state is counted
    assert dict(metrics.state_counts) == {"NY": 1, "CA": 2}


def test_record_lookup_accepts_plain_dicts():
    metrics = MetricsCollector()
    metrics.record_lookup("90210", {"zip": "90210", "locations": [{"city": "Beverly Hills", "state": "CA"}]})
    metrics.record_lookup("1", {"error": "Zip code not found", "zip": "00001"})
    assert metrics.found_count == 1
    assert metrics.not_found_count == 1
    assert dict(metrics.state_counts) == {"CA": 1}


def test_popular_zips_are_pruned_to_top_500():
    metrics = MetricsCollector()
    for i in range(10):
        metrics.record_lookup("99999", _result("99999", "TX"))
    for i in range(999):
        code = f"{i:05d}"
        metrics.record_lookup(code, _result(code, "TX"))
    assert len(metrics.zip_counts) == 1000

    metrics.record_lookup("88888", _result("88888", "TX"))
    assert len(metrics.zip_counts) == 500
    assert metrics.zip_counts["99999"] == 10


def test_summary():
    clock = FakeClock()
    metrics = MetricsCollector(clock=clock)
    for ms in (10, 20, 30, 40, 50):
        metrics.record_request("GET", "/api/lookup/90210", 200, ms)
    metrics.record_lookup("90210", _result("90210", "CA"))
    metrics.record_lookup("90210", _result("90210", "CA"))
    metrics.record_lookup("12345", _result("12345", "NY"))
    metrics.record_lookup("00000", None)
    clock.now = BASE + 2 * 3600

    summary = metrics.summary()
    assert summary["uptime"] == {"ms": 2 * 3600 * 1000, "formatted": "2h 0m"}
    assert summary["requests"]["total"] == 5
    assert summary["requests"]["perHour"] == 3
    assert summary["requests"]["byStatus"] == {"200": 5}
    assert summary["responseTimes"] == {"avg": 30, "p50": 30, "p95": 50, "p99": 50}
    assert summary["lookups"]["hitRate"] == 75
    assert summary["lookups"]["topZips"] == [{"key": "90210", "count": 2}, {"key": "12345", "count": 1}]
    assert summary["lookups"]["topStates"][0] == {"key": "CA", "count": 2}
    assert summary["traffic"]["last24h"] == 5

    hourly = summary["traffic"]["hourly"]
    assert len(hourly) == 24
    assert hourly[-1] == {"hour": "16:00", "requests": 0}
    assert hourly[-3] == {"hour": "14:00", "requests": 5}


def test_last_24h_ignores_older_buckets():
    clock = FakeClock()
    metrics = MetricsCollector(clock=clock)
    metrics.record_request("GET", "/health", 200, 1.0)
    clock.now = BASE + 30 * 3600
    metrics.record_request("GET", "/health", 200, 1.0)
    assert metrics.last_24h_requests() == 1


def test_exposition_format():
    metrics = MetricsCollector(clock=FakeClock())
    metrics.record_request("GET", "/api/lookup/90210", 200, 10.0)
    metrics.record_request("GET", "/missing", 404, 20.0)
    metrics.record_lookup("90210", _result("90210", "CA"))

    text = metrics.exposition()
    lines = text.splitlines()
    assert text.endswith("\n")
    assert "# HELP zipfill_requests_total Total number of requests" in lines
    assert "# TYPE zipfill_requests_total counter" in lines
    assert "zipfill_requests_total 2" in lines
    assert 'zipfill_requests_by_endpoint{endpoint="/api/lookup/:zip"} 1' in lines
    assert 'zipfill_requests_by_status{status="404"} 1' in lines
    assert "# TYPE zipfill_response_time_avg gauge" in lines
    assert "zipfill_response_time_avg 15.00" in lines
    assert "zipfill_response_time_p95 20.00" in lines
    assert "zipfill_lookups_found 1" in lines
    assert "zipfill_lookups_not_found 0" in lines
    assert "zipfill_uptime_seconds 0" in lines

"""In-process request and lookup metrics: no external deps."""

from __future__ import annotations

import math
import re
import time
from collections import defaultdict, deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable

MAX_RESPONSE_TIMES = 1000
MAX_ENDPOINT_RESPONSE_TIMES = 100
MAX_HOURLY_BUCKETS = 168  # 7 days
MAX_TRACKED_ZIPS = 1000
PRUNED_TRACKED_ZIPS = 500
TOP_N = 10

_LOOKUP_PATH_RE = re.compile(r"/api/lookup/[0-9]+")


def normalize_endpoint(path: str) -> str:
    """Collapse ``/api/lookup/<digits>`` to ``/api/lookup/:zip``.

    Other paths are kept as-is, so unmatched URLs (404s on arbitrary paths)
    each add an endpoint key. Those maps are not bounded.
    """
    return _LOOKUP_PATH_RE.sub("/api/lookup/:zip", path, count=1)


def hour_key(timestamp: float) -> str:
    """UTC calendar hour, e.g. ``2025-06-01T14``."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%dT%H")


def percentile(samples: list[float], p: float) -> float:
    """Nearest-rank percentile: index ``ceil(p/100 * n) - 1`` of the sorted samples."""
    if not samples:
        return 0
    ordered = sorted(samples)
    idx = math.ceil((p / 100) * len(ordered)) - 1
    return ordered[max(0, idx)]


def average(samples: list[float]) -> float:
    if not samples:
        return 0
    return sum(samples) / len(samples)


def format_uptime(ms: float) -> str:
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _top_n(counts: dict[str, int], n: int) -> list[dict[str, Any]]:
    # sorted() is stable, so ties keep first-seen order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [{"key": key, "count": count} for key, count in ranked[:n]]


def _attr(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


@dataclass
class MetricsCollector:
    """Process-wide request/lookup counters.

    Each mutation happens under a lock; readers may observe counters from
    slightly different moments, which is acceptable for reporting.
    """

    clock: Callable[[], float] = time.time

    request_count: int = 0
    endpoint_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    status_counts: dict[int, int] = field(default_factory=lambda: defaultdict(int))
    method_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    latencies: deque = field(default_factory=lambda: deque(maxlen=MAX_RESPONSE_TIMES))
    endpoint_latencies: dict[str, deque] = field(
        default_factory=lambda: defaultdict(lambda: deque(maxlen=MAX_ENDPOINT_RESPONSE_TIMES))
    )

    lookup_count: int = 0
    found_count: int = 0
    not_found_count: int = 0
    zip_counts: dict[str, int] = field(default_factory=dict)
    state_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    hourly_requests: dict[str, int] = field(default_factory=dict)

    _start_time: float = field(default=0.0, init=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self._start_time = self.clock()

    @property
    def start_time(self) -> float:
        return self._start_time

    # -- Recording --

    def record_request(self, method: str, path: str, status_code: int, elapsed_ms: float) -> None:
        endpoint = normalize_endpoint(path)
        hour = hour_key(self.clock())
        with self._lock:
            self.request_count += 1
            self.endpoint_counts[endpoint] += 1
            self.status_counts[status_code] += 1
            self.method_counts[method] += 1

            if hour not in self.hourly_requests:
                self._trim_hours()
                self.hourly_requests[hour] = 0
            self.hourly_requests[hour] += 1

            self.latencies.append(elapsed_ms)
            self.endpoint_latencies[endpoint].append(elapsed_ms)

    def record_lookup(self, code: str, result: Any) -> None:
        """Count one lookup. ``result`` is a LookupResult, an error descriptor or None."""
        with self._lock:
            self.lookup_count += 1
            if result is None or _attr(result, "error"):
                self.not_found_count += 1
                return

            self.found_count += 1
            self.zip_counts[code] = self.zip_counts.get(code, 0) + 1
            locations = _attr(result, "locations")
            if locations:
                self.state_counts[_attr(locations[0], "state")] += 1
            if len(self.zip_counts) > MAX_TRACKED_ZIPS:
                self._prune_zips()

    def _trim_hours(self) -> None:
        # Make room for one new bucket by dropping the oldest keys
        keys = sorted(self.hourly_requests)
        while len(keys) >= MAX_HOURLY_BUCKETS:
            del self.hourly_requests[keys.pop(0)]

    def _prune_zips(self) -> None:
        ranked = sorted(self.zip_counts.items(), key=lambda item: item[1], reverse=True)
        self.zip_counts = dict(ranked[:PRUNED_TRACKED_ZIPS])

    # -- Reporting --

    def uptime_ms(self) -> float:
        return (self.clock() - self._start_time) * 1000

    def summary(self) -> dict:
        with self._lock:
            return self._summary()

    def _summary(self) -> dict:
        uptime = self.uptime_ms()
        uptime_hours = uptime / (1000 * 60 * 60)
        latencies = list(self.latencies)
        return {
            "uptime": {
                "ms": int(uptime),
                "formatted": format_uptime(uptime),
            },
            "requests": {
                "total": self.request_count,
                "perHour": _round_half_up(self.request_count / uptime_hours) if uptime_hours > 0 else 0,
                "byEndpoint": dict(self.endpoint_counts),
                "byStatus": {str(k): v for k, v in self.status_counts.items()},
                "byMethod": dict(self.method_counts),
            },
            "responseTimes": {
                "avg": average(latencies),
                "p50": percentile(latencies, 50),
                "p95": percentile(latencies, 95),
                "p99": percentile(latencies, 99),
            },
            "lookups": {
                "total": self.lookup_count,
                "found": self.found_count,
                "notFound": self.not_found_count,
                "hitRate": _round_half_up(self.found_count / self.lookup_count * 100) if self.lookup_count else 0,
                "topZips": _top_n(dict(self.zip_counts), TOP_N),
                "topStates": _top_n(dict(self.state_counts), TOP_N),
            },
            "traffic": {
                "last24h": self.last_24h_requests(),
                "hourly": self.hourly_breakdown(),
            },
        }

    def last_24h_requests(self) -> int:
        now = self.clock()
        return sum(self.hourly_requests.get(hour_key(now - i * 3600), 0) for i in range(24))

    def hourly_breakdown(self) -> list[dict[str, Any]]:
        now = self.clock()
        hours = []
        for i in range(23, -1, -1):
            key = hour_key(now - i * 3600)
            hours.append({"hour": f"{key[11:13]}:00", "requests": self.hourly_requests.get(key, 0)})
        return hours

    def exposition(self) -> str:
        """Render counters and gauges in the Prometheus text format."""
        with self._lock:
            return self._exposition()

    def _exposition(self) -> str:
        latencies = list(self.latencies)
        lines: list[str] = []

        def metric(name: str, kind: str, help_text: str, samples: list[tuple[str, Any]]) -> None:
            lines.append(f"# HELP {name} {help_text}")
            lines.append(f"# TYPE {name} {kind}")
            for labels, value in samples:
                lines.append(f"{name}{labels} {value}")

        metric("zipfill_requests_total", "counter", "Total number of requests",
               [("", self.request_count)])
        metric("zipfill_requests_by_endpoint", "counter", "Requests by endpoint",
               [(f'{{endpoint="{_escape_label(ep)}"}}', n) for ep, n in dict(self.endpoint_counts).items()])
        metric("zipfill_requests_by_status", "counter", "Requests by HTTP status",
               [(f'{{status="{status}"}}', n) for status, n in dict(self.status_counts).items()])
        metric("zipfill_response_time_avg", "gauge", "Average response time in ms",
               [("", f"{average(latencies):.2f}")])
        metric("zipfill_response_time_p95", "gauge", "95th percentile response time",
               [("", f"{percentile(latencies, 95):.2f}")])
        metric("zipfill_lookups_total", "counter", "Total zip lookups", [("", self.lookup_count)])
        metric("zipfill_lookups_found", "counter", "Successful lookups", [("", self.found_count)])
        metric("zipfill_lookups_not_found", "counter", "Failed lookups", [("", self.not_found_count)])
        metric("zipfill_uptime_seconds", "gauge", "Uptime in seconds",
               [("", int(self.uptime_ms() // 1000))])

        return "\n".join(lines) + "\n"

"""
Prometheus Metrics

Application metrics exposed in Prometheus text format:
- HTTP request metrics (count, duration)
- Reservation metrics (created, rejected, commit conflicts)
- Availability lookups
"""

from typing import Dict, List
from collections import defaultdict
from threading import Lock


class Counter:
    """Simple counter metric."""

    metric_type = "counter"

    def __init__(self, name: str, description: str, labels: tuple = ()):
        self.name = name
        self.description = description
        self.labels = labels
        self._values: Dict[tuple, float] = defaultdict(float)
        self._lock = Lock()

    def _key(self, label_values: dict) -> tuple:
        return tuple(str(label_values.get(l, '')) for l in self.labels)

    def inc(self, value: float = 1, **label_values):
        """Increment counter."""
        key = self._key(label_values)
        with self._lock:
            self._values[key] += value

    def get(self, **label_values) -> float:
        with self._lock:
            return self._values.get(self._key(label_values), 0.0)

    def get_all(self) -> Dict[tuple, float]:
        """Get all values."""
        with self._lock:
            return dict(self._values)


class Histogram:
    """Simple histogram metric."""

    metric_type = "histogram"

    DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float('inf'))

    def __init__(self, name: str, description: str, labels: tuple = (), buckets: tuple = None):
        self.name = name
        self.description = description
        self.labels = labels
        self.buckets = buckets or self.DEFAULT_BUCKETS
        self._counts: Dict[tuple, Dict[float, int]] = defaultdict(lambda: defaultdict(int))
        self._sums: Dict[tuple, float] = defaultdict(float)
        self._totals: Dict[tuple, int] = defaultdict(int)
        self._lock = Lock()

    def observe(self, value: float, **label_values):
        """Record an observation."""
        key = tuple(str(label_values.get(l, '')) for l in self.labels)
        with self._lock:
            self._sums[key] += value
            self._totals[key] += 1
            for bucket in self.buckets:
                if value <= bucket:
                    self._counts[key][bucket] += 1

    def get_all(self) -> Dict:
        with self._lock:
            return {
                'counts': {k: dict(v) for k, v in self._counts.items()},
                'sums': dict(self._sums),
                'totals': dict(self._totals)
            }


# ================================
# APPLICATION METRICS
# ================================

# HTTP Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labels=("method", "path", "status_code")
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labels=("method", "path")
)

# Reservation Metrics
reservations_total = Counter(
    "reservations_total",
    "Reservations committed",
    labels=("status",)
)

reservation_rejections_total = Counter(
    "reservation_rejections_total",
    "Reservation requests rejected before commit",
    labels=("reason",)
)

transaction_conflicts_total = Counter(
    "transaction_conflicts_total",
    "Reservation commits re-run because of concurrent changes"
)

availability_checks_total = Counter(
    "availability_checks_total",
    "Availability lookups served",
    labels=("kind",)
)

REGISTRY = (
    http_requests_total,
    http_request_duration_seconds,
    reservations_total,
    reservation_rejections_total,
    transaction_conflicts_total,
    availability_checks_total,
)


def _label_str(names: tuple, key: tuple) -> str:
    if not names:
        return ""
    pairs = ",".join(f'{k}="{v}"' for k, v in zip(names, key))
    return f"{{{pairs}}}"


def format_prometheus_metrics() -> str:
    """Format all metrics in Prometheus text format."""
    lines: List[str] = []

    for metric in REGISTRY:
        lines.append(f"# HELP {metric.name} {metric.description}")
        lines.append(f"# TYPE {metric.name} {metric.metric_type}")

        if isinstance(metric, Histogram):
            data = metric.get_all()
            for key in data['sums']:
                labels = _label_str(metric.labels, key)
                lines.append(f"{metric.name}_sum{labels} {data['sums'][key]}")
                lines.append(f"{metric.name}_count{labels} {data['totals'][key]}")
            continue

        values = metric.get_all()
        if not values and not metric.labels:
            lines.append(f"{metric.name} 0")
        for key, value in values.items():
            lines.append(f"{metric.name}{_label_str(metric.labels, key)} {value}")

    return "\n".join(lines) + "\n"


# ================================
# CONVENIENCE FUNCTIONS
# ================================

def record_http_request(method: str, path: str, status_code: int, duration: float):
    """Record an HTTP request."""
    http_requests_total.inc(method=method, path=path, status_code=str(status_code))
    http_request_duration_seconds.observe(duration, method=method, path=path)


def record_reservation_created(status: str):
    reservations_total.inc(status=status)


def record_reservation_rejected(reason: str):
    reservation_rejections_total.inc(reason=reason)

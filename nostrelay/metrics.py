"""Relay metrics and their text exposition."""

from __future__ import annotations

import bisect
import math
import re
import threading
from dataclasses import dataclass

__all__ = [
    "Counter",
    "LabeledCounter",
    "Gauge",
    "Histogram",
    "Registry",
    "RelayMetrics",
    "create_metrics",
]

_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
_LABEL_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def _format_value(value: float) -> str:
    if isinstance(value, float):
        if math.isinf(value):
            return "+Inf" if value > 0 else "-Inf"
        if math.isnan(value):
            return "NaN"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _label_text(pairs: list[tuple[str, str]]) -> str:
    if not pairs:
        return ""
    inner = ",".join(f'{k}="{_escape_label(v)}"' for k, v in pairs)
    return "{" + inner + "}"


class _Metric:
    type_name = "untyped"

    def __init__(self, name: str, help: str) -> None:
        if not _NAME_RE.match(name):
            raise ValueError(f"invalid metric name: {name!r}")
        if not help:
            raise ValueError("metric help text must not be empty")
        self.name = name
        self.help = help
        self._lock = threading.Lock()

    def _samples(self) -> list[str]:
        raise NotImplementedError

    def _render(self) -> list[str]:
        samples = self._samples()
        if not samples:
            return []
        return [
            f"# HELP {self.name} {_escape_help(self.help)}",
            f"# TYPE {self.name} {self.type_name}",
            *samples,
        ]


class Counter(_Metric):
    """A monotonically increasing integer count."""

    type_name = "counter"

    def __init__(self, name: str, help: str) -> None:
        super().__init__(name, help)
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def inc(self) -> None:
        with self._lock:
            self._value += 1

    def _samples(self) -> list[str]:
        return [f"{self.name} {self._value}"]


class LabeledCounter(_Metric):
    """A family of counters told apart by label values."""

    type_name = "counter"

    def __init__(self, name: str, help: str, label_names: list[str] | tuple[str, ...]) -> None:
        super().__init__(name, help)
        for label in label_names:
            if not _LABEL_RE.match(label):
                raise ValueError(f"invalid label name: {label!r}")
        self.label_names = tuple(label_names)
        self._children: dict[tuple[str, ...], Counter] = {}

    def labels(self, *args: str) -> Counter:
        """The counter for these label values, created on first use."""
        if len(args) != len(self.label_names):
            raise ValueError(
                f"expected {len(self.label_names)} label values, got {len(args)}"
            )
        key = tuple(args)
        with self._lock:
            child = self._children.get(key)
            if child is None:
                child = Counter(self.name, self.help)
                self._children[key] = child
            return child

    def _samples(self) -> list[str]:
        with self._lock:
            items = sorted(self._children.items())
        return [
            f"{self.name}{_label_text(list(zip(self.label_names, key)))} {child.value}"
            for key, child in items
        ]


class Gauge(_Metric):
    """An integer value that can go up and down."""

    type_name = "gauge"

    def __init__(self, name: str, help: str) -> None:
        super().__init__(name, help)
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def inc(self) -> None:
        with self._lock:
            self._value += 1

    def dec(self) -> None:
        with self._lock:
            self._value -= 1

    def set(self, value: int) -> None:
        with self._lock:
            self._value = int(value)

    def _samples(self) -> list[str]:
        return [f"{self.name} {self._value}"]


class Histogram(_Metric):
    """Observations counted into cumulative buckets."""

    type_name = "histogram"

    def __init__(self, name: str, help: str, buckets: tuple[float, ...] = DEFAULT_BUCKETS) -> None:
        super().__init__(name, help)
        bounds = [float(b) for b in buckets if not math.isinf(b)]
        if not bounds or any(a >= b for a, b in zip(bounds, bounds[1:])):
            raise ValueError("histogram buckets must be non-empty and strictly increasing")
        self._bounds = bounds
        self._counts = [0] * (len(bounds) + 1)
        self._sum = 0.0

    @property
    def count(self) -> int:
        return sum(self._counts)

    @property
    def sum(self) -> float:
        return self._sum

    @property
    def buckets(self) -> list[tuple[float, int]]:
        """Upper bounds with cumulative counts, ending with ``+inf``."""
        with self._lock:
            counts = list(self._counts)
        result = []
        running = 0
        for bound, count in zip([*self._bounds, math.inf], counts):
            running += count
            result.append((bound, running))
        return result

    def observe(self, value: float) -> None:
        with self._lock:
            self._counts[bisect.bisect_left(self._bounds, value)] += 1
            self._sum += value

    def _samples(self) -> list[str]:
        buckets = self.buckets
        lines = [
            f'{self.name}_bucket{{le="{_format_value(float(bound))}"}} {count}'
            for bound, count in buckets
        ]
        lines.append(f"{self.name}_sum {_format_value(float(self._sum))}")
        lines.append(f"{self.name}_count {buckets[-1][1]}")
        return lines


class Registry:
    """A named set of metrics that renders in the text exposition format."""

    def __init__(self) -> None:
        self._metrics: dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def register(self, metric: _Metric) -> None:
        """Add a metric; a name may be registered only once."""
        with self._lock:
            if metric.name in self._metrics:
                raise ValueError(f"duplicate metric: {metric.name}")
            self._metrics[metric.name] = metric

    def encode(self) -> str:
        """Render every metric, sorted by name."""
        with self._lock:
            metrics = sorted(self._metrics.values(), key=lambda m: m.name)
        lines = [line for metric in metrics for line in metric._render()]
        return "".join(f"{line}\n" for line in lines)


@dataclass
class RelayMetrics:
    """The metrics a relay keeps."""

    query_sub: Histogram
    query_db: Histogram
    db_connections: Gauge
    write_events: Histogram
    sent_events: LabeledCounter
    connections: Counter
    disconnects: LabeledCounter
    query_aborts: LabeledCounter
    cmd_req: Counter
    cmd_event: Counter
    cmd_close: Counter
    cmd_auth: Counter


def create_metrics() -> tuple[Registry, RelayMetrics]:
    """Build the relay metrics and a registry holding all of them."""
    metrics = RelayMetrics(
        query_sub=Histogram("nostr_query_seconds", "Subscription response times"),
        query_db=Histogram("nostr_filter_seconds", "Filter SQL query times"),
        write_events=Histogram("nostr_events_write_seconds", "Event writing response times"),
        sent_events=LabeledCounter("nostr_events_sent_total", "Events sent to clients", ["source"]),
        connections=Counter("nostr_connections_total", "New connections"),
        db_connections=Gauge("nostr_db_connections", "Active database connections"),
        query_aborts=LabeledCounter("nostr_query_abort_total", "Aborted queries", ["reason"]),
        cmd_req=Counter("nostr_cmd_req_total", "REQ commands"),
        cmd_event=Counter("nostr_cmd_event_total", "EVENT commands"),
        cmd_close=Counter("nostr_cmd_close_total", "CLOSE commands"),
        cmd_auth=Counter("nostr_cmd_auth_total", "AUTH commands"),
        disconnects=LabeledCounter("nostr_disconnects_total", "Client disconnects", ["reason"]),
    )
    registry = Registry()
    for metric in (
        metrics.query_sub,
        metrics.query_db,
        metrics.write_events,
        metrics.sent_events,
        metrics.connections,
        metrics.db_connections,
        metrics.query_aborts,
        metrics.cmd_req,
        metrics.cmd_event,
        metrics.cmd_close,
        metrics.cmd_auth,
        metrics.disconnects,
    ):
        registry.register(metric)
    return registry, metrics
"""
In-process counters exported in Prometheus text format at GET /metrics.

Only counters are needed here: every series counts checkout, subscribe
or HTTP outcomes. Values are per-process and reset on restart.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Tuple

UNMATCHED_PATH = "unmatched"


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace("\"", "\\\"")


class Counter:
    def __init__(self, name: str, help_text: str, label_names: Optional[Iterable[str]] = None):
        self.name = name
        self.help_text = help_text
        self.label_names = tuple(label_names or ())
        self._values: Dict[Tuple[str, ...], int] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> Tuple[str, ...]:
        labels = labels or {}
        unknown = set(labels) - set(self.label_names)
        if unknown:
            raise ValueError(f"{self.name} has no label(s) {sorted(unknown)}")
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: int = 1):
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + amount

    def value(self, labels: Optional[Dict[str, str]] = None) -> int:
        key = self._key(labels)
        with self._lock:
            return self._values.get(key, 0)

    def export(self) -> List[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} counter"]
        with self._lock:
            series = sorted(self._values.items())
        for values, count in series:
            if self.label_names:
                pairs = ",".join(f'{n}="{_escape(v)}"' for n, v in zip(self.label_names, values))
                lines.append(f"{self.name}{{{pairs}}} {count}")
            else:
                lines.append(f"{self.name} {count}")
        return lines

    def reset(self):
        with self._lock:
            self._values.clear()


class MetricsRegistry:
    def __init__(self):
        self.counters: Dict[str, Counter] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, help_text: str, label_names: Optional[Iterable[str]] = None) -> Counter:
        with self._lock:
            if name not in self.counters:
                self.counters[name] = Counter(name, help_text, label_names)
            return self.counters[name]

    def export_prometheus(self) -> str:
        lines: List[str] = []
        for counter in list(self.counters.values()):
            lines.extend(counter.export())
        return "\n".join(lines) + "\n"

    def reset(self):
        for counter in self.counters.values():
            counter.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter(
    "http_requests_total", "HTTP responses by method, route and status.", ["method", "path", "status"]
)
ratelimit_block_total = METRICS.counter(
    "ratelimit_block_total", "Requests rejected by a rate limit.", ["scope"]
)
checkout_requests_total = METRICS.counter(
    "checkout_requests_total", "Checkout attempts by entry point and outcome.", ["entry", "outcome"]
)
subscribe_requests_total = METRICS.counter(
    "subscribe_requests_total", "Waitlist subscribe attempts by outcome.", ["outcome"]
)


def route_path(scope) -> str:
    """Path label for a matched route (e.g. /api/checkout), or "unmatched" for 404s.

    No route declares path parameters, so the matched path is the route template.
    """
    if scope.get("route") is None:
        return UNMATCHED_PATH
    return scope["path"]

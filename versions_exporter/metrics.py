from __future__ import annotations

from contextlib import contextmanager
from threading import RLock
from typing import Iterable, Iterator, Sequence

from prometheus_client import CollectorRegistry, Counter, generate_latest
from prometheus_client.core import GaugeMetricFamily

from .records import VersionRecord

APPLICATION_INFO = "application_info"
APPLICATION_INFO_HELP = "Informations on applications, especially version."
APPLICATION_INFO_LABELS = ("application_name", "current_version", "latest_version")


class LabeledGauge:
    """Gauge keyed by label tuples, guarded by one lock.

    Writers batch changes inside `transaction()`; scrapes take the same lock,
    so they see the state before or after a batch, never in between.
    """

    def __init__(self, name: str, documentation: str, labelnames: Sequence[str]):
        self.name = name
        self.documentation = documentation
        self.labelnames = tuple(labelnames)
        self._lock = RLock()
        self._values: dict[tuple[str, ...], float] = {}

    @contextmanager
    def transaction(self) -> Iterator["LabeledGauge"]:
        with self._lock:
            yield self

    def reset(self) -> None:
        with self._lock:
            self._values = {}

    def set(self, labels: dict[str, str], value: float) -> None:
        if set(labels) != set(self.labelnames):
            raise ValueError(f"Expected labels {self.labelnames}, got {tuple(labels)}")
        key = tuple(str(labels[n]) for n in self.labelnames)
        with self._lock:
            self._values[key] = float(value)

    def samples(self) -> list[tuple[dict[str, str], float]]:
        with self._lock:
            items = list(self._values.items())
        return [(dict(zip(self.labelnames, key)), value) for key, value in items]

    def describe(self) -> list[GaugeMetricFamily]:
        return [GaugeMetricFamily(self.name, self.documentation, labels=self.labelnames)]

    def collect(self) -> Iterator[GaugeMetricFamily]:
        family = GaugeMetricFamily(self.name, self.documentation, labels=self.labelnames)
        with self._lock:
            items = list(self._values.items())
        for key, value in items:
            family.add_metric(list(key), value)
        yield family


class MetricsRegistry:
    """Owns every metric the exporter serves; one instance per process."""

    def __init__(self) -> None:
        self.registry = CollectorRegistry()
        self.scan_errors = Counter(
            "versions_exporter_scan_errors",
            "Workload listings that failed, by workload kind.",
            ["kind"],
            registry=self.registry,
        )
        self._application_info: LabeledGauge | None = None

    def register_gauge(self, name: str, documentation: str, labelnames: Sequence[str]) -> LabeledGauge:
        gauge = LabeledGauge(name, documentation, labelnames)
        self.registry.register(gauge)
        return gauge

    def application_info(self) -> LabeledGauge:
        """The application_info gauge, registered on first use."""
        if self._application_info is None:
            self._application_info = self.register_gauge(APPLICATION_INFO, APPLICATION_INFO_HELP, APPLICATION_INFO_LABELS)
        return self._application_info

    def record_scan_error(self, kind: str, exc: Exception | None = None) -> None:
        self.scan_errors.labels(kind=kind).inc()

    def exposition(self) -> bytes:
        return generate_latest(self.registry)


def publish(gauge: LabeledGauge, records: Iterable[VersionRecord]) -> None:
    """Replace every series of the gauge with one series per record, valued 1."""
    with gauge.transaction():
        gauge.reset()
        for record in records:
            gauge.set(record.labels(), 1)

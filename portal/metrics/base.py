"""Counter and distribution primitives held by the registry."""
from __future__ import annotations

from abc import ABC, abstractmethod
from bisect import bisect_left
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from time import perf_counter
from typing import Dict, Generic, Iterable, Iterator, List, Mapping, Tuple, TypeVar

LabelValues = Tuple[str, ...]
SeriesT = TypeVar("SeriesT")

# Upper bounds, in seconds, of the duration buckets.
DEFAULT_BUCKETS: Tuple[float, ...] = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class Metric(ABC, Generic[SeriesT]):
    """Named metric holding one series per combination of label values."""

    kind = "metric"

    def __init__(
        self, name: str, *, description: str = "", label_names: Iterable[str] | None = None
    ) -> None:
        self.name = name
        self.description = description
        self.label_names: Tuple[str, ...] = tuple(label_names or ())
        self._series: Dict[LabelValues, SeriesT] = {}
        self._lock = Lock()

    def _key(self, labels: Mapping[str, str] | None) -> LabelValues:
        labels = labels or {}
        unexpected = set(labels) - set(self.label_names)
        if unexpected:
            raise ValueError(f"Metric '{self.name}' got unknown labels {sorted(unexpected)}")
        missing = [label for label in self.label_names if label not in labels]
        if missing:
            raise ValueError(f"Metric '{self.name}' is missing labels {missing}")
        return tuple(str(labels[label]) for label in self.label_names)

    @abstractmethod
    def _new_series(self) -> SeriesT:
        """Create the empty series for a new label combination."""

    @abstractmethod
    def _render(self, series: SeriesT) -> Mapping[str, float]:
        """Summarise one series for a snapshot."""

    def _series_for(self, key: LabelValues) -> SeriesT:
        # Caller holds the lock.
        series = self._series.get(key)
        if series is None:
            series = self._series[key] = self._new_series()
        return series

    def snapshot(self) -> Mapping[LabelValues, Mapping[str, float]]:
        with self._lock:
            return {key: self._render(series) for key, series in self._series.items()}


@dataclass
class _Total:
    value: float = 0.0


class CounterMetric(Metric[_Total]):
    kind = "counter"

    def _new_series(self) -> _Total:
        return _Total()

    def _render(self, series: _Total) -> Mapping[str, float]:
        return {"value": series.value}

    def inc(self, amount: float = 1.0, *, labels: Mapping[str, str] | None = None) -> None:
        if amount < 0:
            raise ValueError(f"Counter '{self.name}' cannot decrease")
        key = self._key(labels)
        with self._lock:
            self._series_for(key).value += amount

    def value(self, *, labels: Mapping[str, str] | None = None) -> float:
        key = self._key(labels)
        with self._lock:
            series = self._series.get(key)
            return series.value if series is not None else 0.0


@dataclass
class Histogram:
    """Bucketed summary of observed values."""

    bounds: Tuple[float, ...]
    buckets: List[int] = field(default_factory=list)
    count: int = 0
    total: float = 0.0
    min: float | None = None
    max: float | None = None

    def __post_init__(self) -> None:
        if not self.buckets:
            # One slot per bound plus the overflow slot.
            self.buckets = [0] * (len(self.bounds) + 1)

    def observe(self, value: float) -> None:
        self.buckets[bisect_left(self.bounds, value)] += 1
        self.count += 1
        self.total += value
        self.min = value if self.min is None or value < self.min else self.min
        self.max = value if self.max is None or value > self.max else self.max

    def to_mapping(self) -> Mapping[str, float]:
        summary: Dict[str, float] = {
            "count": float(self.count),
            "sum": self.total,
            "min": self.min if self.min is not None else 0.0,
            "max": self.max if self.max is not None else 0.0,
            "avg": self.total / self.count if self.count else 0.0,
        }
        cumulative = 0
        for bound, hits in zip(self.bounds, self.buckets):
            cumulative += hits
            summary[f"le_{bound:g}"] = float(cumulative)
        return summary


class DistributionMetric(Metric[Histogram]):
    kind = "distribution"

    def __init__(
        self,
        name: str,
        *,
        description: str = "",
        label_names: Iterable[str] | None = None,
        buckets: Iterable[float] | None = None,
    ) -> None:
        super().__init__(name, description=description, label_names=label_names)
        self.bounds: Tuple[float, ...] = tuple(sorted(buckets)) if buckets is not None else DEFAULT_BUCKETS

    def _new_series(self) -> Histogram:
        return Histogram(self.bounds)

    def _render(self, series: Histogram) -> Mapping[str, float]:
        return series.to_mapping()

    def observe(self, value: float, *, labels: Mapping[str, str] | None = None) -> None:
        key = self._key(labels)
        with self._lock:
            self._series_for(key).observe(value)


@contextmanager
def track_duration(metric: DistributionMetric, *, labels: Mapping[str, str] | None = None) -> Iterator[None]:
    """Observe the wall time of the block, whether or not it raises."""

    start = perf_counter()
    try:
        yield
    finally:
        metric.observe(perf_counter() - start, labels=labels)

from __future__ import annotations

from threading import Lock
from typing import Callable, Dict, Iterable, Mapping, Tuple, TypeVar

from .base import CounterMetric, DistributionMetric, LabelValues, Metric

MetricT = TypeVar("MetricT", bound=Metric)


class MetricsRegistry:
    """Process-local registry of named metrics."""

    def __init__(self) -> None:
        self._metrics: Dict[str, Metric] = {}
        self._lock = Lock()

    def _register(self, name: str, kind: type[MetricT], factory: Callable[[], MetricT]) -> MetricT:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = factory()
                self._metrics[name] = metric
        if not isinstance(metric, kind):
            raise TypeError(f"Metric '{name}' is already registered as a {metric.kind}")
        return metric

    def counter(
        self, name: str, *, description: str = "", label_names: Iterable[str] | None = None
    ) -> CounterMetric:
        return self._register(
            name,
            CounterMetric,
            lambda: CounterMetric(name, description=description, label_names=label_names),
        )

    def distribution(
        self,
        name: str,
        *,
        description: str = "",
        label_names: Iterable[str] | None = None,
        buckets: Iterable[float] | None = None,
    ) -> DistributionMetric:
        return self._register(
            name,
            DistributionMetric,
            lambda: DistributionMetric(
                name, description=description, label_names=label_names, buckets=buckets
            ),
        )

    def names(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._metrics))

    def snapshot(self) -> Dict[str, Mapping[LabelValues, Mapping[str, float]]]:
        with self._lock:
            metrics = dict(self._metrics)
        return {name: metric.snapshot() for name, metric in metrics.items()}

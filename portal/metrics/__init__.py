"""Process-local metrics for the ticket engine.

``metrics_registry`` is the shared default; tests and embedders can pass a
fresh :class:`MetricsRegistry` to the service and dispatcher instead.
"""
from .definitions import DEFAULT_METRIC_DEFINITIONS, MetricDefinition
from .registry import MetricsRegistry

metrics_registry = MetricsRegistry()


def register_default_metrics(registry: MetricsRegistry | None = None) -> MetricsRegistry:
    target = registry or metrics_registry
    factories = {"counter": target.counter, "distribution": target.distribution}
    for definition in DEFAULT_METRIC_DEFINITIONS:
        factory = factories.get(definition.metric_type)
        if factory is None:
            raise ValueError(f"Unsupported metric type: {definition.metric_type}")
        factory(definition.name, description=definition.description, label_names=definition.label_names)
    return target


register_default_metrics()

__all__ = [
    "MetricDefinition",
    "MetricsRegistry",
    "metrics_registry",
    "register_default_metrics",
]

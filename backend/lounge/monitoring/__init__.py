from .prometheus_metrics import REGISTRY, PrometheusMetrics, prometheus_metrics

__all__ = ["PrometheusMetrics", "REGISTRY", "prometheus_metrics"]

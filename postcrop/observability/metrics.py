"""
Prometheus metrics collection for Postcrop.

This module provides:
- Rasterization metrics (count, duration, output size)
- Cache metrics (hits, misses, stale drops)
- Source image load metrics
- Editing commit counters
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

from ..core.config import settings


class MetricsCollector:
    """Central metrics collector for the crop engine."""

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics collector."""
        self.registry = registry or CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self):
        """Initialize all crop engine metrics."""

        self.app_info = Info(
            'postcrop_info',
            'Application information',
            registry=self.registry
        )
        self.app_info.info({
            'version': settings.app.version,
            'environment': settings.app.environment,
            'name': settings.app.app_name
        })

        # Rasterization
        self.rasterizations_total = Counter(
            'postcrop_rasterizations_total',
            'Total per-platform rasterizations',
            ['platform', 'success'],
            registry=self.registry
        )

        self.rasterization_duration = Histogram(
            'postcrop_rasterization_duration_seconds',
            'Time spent decoding, sampling and encoding one platform image',
            ['platform'],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
            registry=self.registry
        )

        self.raster_output_bytes = Histogram(
            'postcrop_raster_output_bytes',
            'Encoded PNG size in bytes',
            ['platform'],
            buckets=[4096, 16384, 65536, 262144, 1048576, 4194304],
            registry=self.registry
        )

        # Cache
        self.cache_operations_total = Counter(
            'postcrop_cache_operations_total',
            'Raster cache lookups',
            ['status'],
            registry=self.registry
        )

        self.stale_results_total = Counter(
            'postcrop_stale_results_total',
            'Rasterizations dropped because their context changed while suspended',
            ['reason'],
            registry=self.registry
        )

        # Source images
        self.image_loads_total = Counter(
            'postcrop_image_loads_total',
            'Source image load attempts',
            ['source_kind', 'success'],
            registry=self.registry
        )

        # Editing
        self.commits_total = Counter(
            'postcrop_commits_total',
            'Crop box commits from the interactive controller',
            ['platform'],
            registry=self.registry
        )

    def track_rasterization(self, platform: str, duration: float, success: bool,
                            output_bytes: int | None = None):
        """Track one rasterization attempt."""
        self.rasterizations_total.labels(platform=platform, success=str(success).lower()).inc()
        self.rasterization_duration.labels(platform=platform).observe(duration)
        if success and output_bytes is not None:
            self.raster_output_bytes.labels(platform=platform).observe(output_bytes)

    def track_cache_operation(self, status: str):
        """Track raster cache hit/miss."""
        self.cache_operations_total.labels(status=status).inc()

    def track_stale_result(self, reason: str):
        """Track a result dropped by a context check."""
        self.stale_results_total.labels(reason=reason).inc()

    def track_image_load(self, source_kind: str, success: bool):
        """Track a source image load."""
        self.image_loads_total.labels(source_kind=source_kind, success=str(success).lower()).inc()

    def track_commit(self, platform: str):
        """Track a crop box commit."""
        self.commits_total.labels(platform=platform).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus format."""
        return generate_latest(self.registry).decode('utf-8')


@contextmanager
def track_processing_time(platform: str, collector: "MetricsCollector | None" = None):
    """Context manager yielding a dict; records rasterization time on exit."""
    collector = collector or metrics
    outcome = {"success": False, "output_bytes": None}
    start_time = time.perf_counter()
    try:
        yield outcome
    finally:
        collector.track_rasterization(
            platform,
            time.perf_counter() - start_time,
            outcome["success"],
            outcome["output_bytes"],
        )


def get_metrics_response() -> tuple[str, str]:
    """Get metrics payload and content type for an exporter endpoint."""
    return metrics.get_metrics(), CONTENT_TYPE_LATEST


# Global metrics instance
metrics = MetricsCollector()


def get_test_metrics() -> MetricsCollector:
    """Get metrics collector on a fresh registry for testing."""
    return MetricsCollector(CollectorRegistry())

"""Prometheus collector implementation using composition pattern.

Provides a reusable collector that separates data fetching from metric
generation through dependency injection. Data is fetched fresh on every
scrape; nothing is cached between scrapes.
"""

import time
from collections.abc import Callable, Iterator
from threading import Lock
from typing import Generic, TypeAlias, TypeVar

import structlog
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

logger = structlog.get_logger(__name__)

T = TypeVar("T")


Fetcher: TypeAlias = Callable[[], T]
MetricsGenerator: TypeAlias = Callable[[T], Iterator[Metric]]
MetricsDescriber: TypeAlias = Callable[[], Iterator[Metric]]


class SlurmCollector(Collector, Generic[T]):
    """Prometheus collector for SLURM metrics using composition pattern.

    Separates concerns through dependency injection:
    - Data fetching and aggregation (via Fetcher function with injected dependencies)
    - Metric generation (via MetricsGenerator function)
    - Metric descriptors for registration (via MetricsDescriber function)
    - Scrape metadata and error handling (managed internally)

    Each scrape calls the fetcher and hands its result straight to the
    generator, so concurrent scrapes never see each other's data. If the
    fetcher raises, no domain metrics are yielded for that scrape.
    """

    def __init__(
        self,
        fetcher: Fetcher[T],
        generator: MetricsGenerator[T],
        describer: MetricsDescriber,
        metric_prefix: str,
        scraper_description: str,
    ):
        """Initialize the SLURM collector.

        Args:
            fetcher: Function that fetches and aggregates data (with
                dependencies pre-injected).
            generator: Function that generates Prometheus metrics from data.
            describer: Function yielding sample-less families for every
                metric the generator can produce.
            metric_prefix: Metric name prefix (e.g., "partition").
            scraper_description: Description of the scraper for logging
                (e.g., the commands queried).
        """
        self._fetcher = fetcher
        self._generator = generator
        self._describer = describer
        self._metric_prefix = metric_prefix

        # Scrapes may overlap; the counter is the only state they share
        self._error_lock = Lock()
        self._error_count = 0

        self._scraper_desc = scraper_description

    def _scrape_duration_family(self) -> GaugeMetricFamily:
        return GaugeMetricFamily(
            f"slurm_{self._metric_prefix}_scrape_duration",
            f"scrape duration from {self._scraper_desc} in seconds, "
            f"-1 indicates error",
        )

    def _scrape_error_family(self) -> CounterMetricFamily:
        return CounterMetricFamily(
            f"slurm_{self._metric_prefix}_scrape_error",
            f"slurm {self._metric_prefix} info scrape errors",
        )

    def describe(self) -> Iterator[Metric]:
        """Describe metrics for registration.

        Called once by the registry when the collector is registered, so
        that registration never triggers a fetch.

        Yields:
            Sample-less Prometheus Metric objects.
        """
        yield self._scrape_duration_family()
        yield self._scrape_error_family()
        yield from self._describer()

    def fetch_metrics(self) -> tuple[T, float]:
        """Fetch fresh data.

        Returns:
            Tuple of (data, fetch_duration) with the duration in seconds.
        """
        start = time.time()
        data = self._fetcher()
        duration = time.time() - start
        logger.debug(
            "Fetched fresh data",
            metric_prefix=self._metric_prefix,
            duration_seconds=duration,
        )
        return data, duration

    def collect(self) -> Iterator[Metric]:
        """Collect metrics for Prometheus scrape.

        Called by Prometheus client during each scrape. Yields scrape metadata
        (duration and error count) followed by domain-specific metrics from the
        configured generator function.

        Yields:
            Prometheus Metric objects (metadata + domain metrics).
        """
        data: T | None = None
        failed = False
        try:
            data, duration_value = self.fetch_metrics()
        except Exception:
            logger.exception(
                "Failed to fetch metrics for collection",
                metric_prefix=self._metric_prefix,
            )
            failed = True
            duration_value = -1.0

        with self._error_lock:
            if failed:
                self._error_count += 1
            error_count = self._error_count

        scrape_duration = self._scrape_duration_family()
        scrape_duration.add_metric([], duration_value)
        yield scrape_duration

        error_counter = self._scrape_error_family()
        error_counter.add_metric([], error_count)
        yield error_counter

        # Generate metrics from data using the injected generator (skip if error)
        if not failed:
            yield from self._generator(data)

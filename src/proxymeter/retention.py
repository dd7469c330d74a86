import asyncio
from datetime import timedelta

import structlog

from proxymeter.aggregator import Clock
from proxymeter.metrics import MetricsUpdater
from proxymeter.statistics import RequestStatistics
from proxymeter.timestamps import utc_now

logger = structlog.get_logger()

# keep recorded usage for one week by default
_DEFAULT_RETENTION = timedelta(hours=168)


class RetentionSweeper:
    """
    RetentionSweeper periodically evicts usage details older
    than the retention window from the usage store, so an
    always-on proxy does not grow its statistics without bound.
    The loop runs until stop() is called, sleeping for the
    configured interval between sweeps.
    """

    def __init__(
        self,
        statistics: "RequestStatistics",
        metrics_updater: "MetricsUpdater | None" = None,
        retention: "timedelta" = _DEFAULT_RETENTION,
        sweep_interval_seconds: "int" = 300,
        clock: "Clock" = utc_now,
    ) -> "None":
        self._statistics = statistics
        self._metrics = metrics_updater
        self._retention = retention
        self._interval = sweep_interval_seconds
        self._clock = clock
        self._stop_event: "asyncio.Event" = asyncio.Event()

    def stop(self) -> "None":
        """
        signals the sweep loop to stop after the current cycle.
        """
        self._stop_event.set()

    def sweep(self) -> "int":
        """
        runs a single eviction pass and returns the number of
        evicted details.
        """
        cutoff = self._clock() - self._retention
        evicted = self._statistics.evict_before(cutoff)
        retained = self._statistics.detail_count()

        if self._metrics is not None:
            self._metrics.set_retained_details(retained)

        logger.info(
            "retention_sweep",
            cutoff=cutoff.isoformat(),
            evicted=evicted,
            retained=retained,
        )
        return evicted

    async def run(self) -> "None":
        """
        runs the sweep loop. Runs until stop() is called.
        """
        while not self._stop_event.is_set():
            self.sweep()

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass

import asyncio
from datetime import timedelta

import structlog
import uvicorn
from prometheus_client import start_http_server

from proxymeter.aggregator import MetricsAggregator, log_report_observer
from proxymeter.api import create_app
from proxymeter.cli import parse_args
from proxymeter.errors import SnapshotLoadError
from proxymeter.logging import setup_logging
from proxymeter.metrics import MetricsUpdater
from proxymeter.retention import RetentionSweeper
from proxymeter.statistics import RequestStatistics, load_snapshot_file

logger = structlog.get_logger()


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':8317' or '0.0.0.0:8317'.
    """
    if addr.startswith(":"):
        return ("0.0.0.0", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


def main() -> "None":
    config = parse_args()
    setup_logging(config.log_level)

    metrics_updater = MetricsUpdater()
    statistics = RequestStatistics(metrics_updater)

    if config.snapshot_enabled:
        try:
            snapshot = load_snapshot_file(config.snapshot_file)
        except SnapshotLoadError as exc:
            raise SystemExit(str(exc)) from exc
        imported = statistics.merge_snapshot(snapshot)
        logger.info("snapshot_imported", path=config.snapshot_file, details=imported)

    observer = log_report_observer if config.debug_report else None
    app = create_app(
        statistics,
        metrics_updater=metrics_updater,
        aggregator=MetricsAggregator(observer=observer),
    )

    telemetry_host, telemetry_port = _parse_listen_address(config.telemetry_address)
    start_http_server(telemetry_port, addr=telemetry_host)
    logger.info("telemetry_server_started", host=telemetry_host, port=telemetry_port)

    sweeper = RetentionSweeper(
        statistics,
        metrics_updater,
        retention=timedelta(hours=config.retention_hours),
        sweep_interval_seconds=config.sweep_interval,
    )

    host, port = _parse_listen_address(config.listen_address)
    # uvicorn installs its own SIGINT/SIGTERM handlers and returns
    # from serve() once shutdown completes
    server = uvicorn.Server(
        uvicorn.Config(app, host=host, port=port, log_config=None)
    )

    async def _run() -> "None":
        sweeper_task = asyncio.create_task(sweeper.run())
        logger.info("report_server_starting", host=host, port=port)
        try:
            await server.serve()
        finally:
            logger.info("shutting_down")
            sweeper.stop()
            await sweeper_task
            logger.info("shutdown_complete")

    asyncio.run(_run())


if __name__ == "__main__":
    main()

import time

import structlog
from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from proxymeter.aggregator import MetricsAggregator, ReportObserver
from proxymeter.errors import ValidationError
from proxymeter.metrics import MetricsUpdater
from proxymeter.models import MetricsQuery
from proxymeter.statistics import SnapshotSource

logger = structlog.get_logger()

METRICS_PATH = "/_qs/metrics"


def create_app(
    source: "SnapshotSource",
    metrics_updater: "MetricsUpdater | None" = None,
    observer: "ReportObserver | None" = None,
    aggregator: "MetricsAggregator | None" = None,
) -> "FastAPI":
    """
    builds the HTTP application serving usage reports from source.
    """
    app = FastAPI(title="proxymeter", docs_url=None, redoc_url=None)
    metrics_aggregator = aggregator or MetricsAggregator(observer=observer)

    @app.get("/healthz")
    async def healthz() -> "dict[str, str]":
        return {"status": "ok"}

    # timestamps arrive as raw strings so that validation and its
    # error messages stay in the aggregator
    @app.get(METRICS_PATH)
    def get_metrics(
        from_: "str" = Query("", alias="from"),
        to: "str" = Query(""),
        model: "str" = Query(""),
    ) -> "JSONResponse":
        query = MetricsQuery(from_=from_, to=to, model=model)
        started = time.monotonic()

        try:
            report = metrics_aggregator.aggregate(source.snapshot(), query)
        except ValidationError as exc:
            logger.warning("report_validation_error", error=str(exc))
            if metrics_updater is not None:
                metrics_updater.inc_report_error("validation")
            return JSONResponse(status_code=400, content={"error": str(exc)})

        if metrics_updater is not None:
            metrics_updater.observe_report_duration(time.monotonic() - started)

        logger.debug(
            "report_served",
            model=model or None,
            requests=report.totals.requests,
            tokens=report.totals.tokens,
        )
        return JSONResponse(content=report.to_dict())

    return app

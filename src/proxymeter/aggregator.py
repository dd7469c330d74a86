from datetime import datetime, timedelta
from typing import Callable

import structlog

from proxymeter.errors import ValidationError
from proxymeter.models import (
    MetricsQuery,
    ModelMetric,
    Report,
    Snapshot,
    TimeseriesBucket,
    Totals,
)
from proxymeter.timestamps import (
    ensure_aware,
    format_rfc3339,
    parse_rfc3339,
    truncate_to_hour,
    utc_now,
)

logger = structlog.get_logger()

# window used when the query sets neither bound
DEFAULT_WINDOW = timedelta(hours=24)

Clock = Callable[[], datetime]
ReportObserver = Callable[[Report], None]


def noop_observer(report: "Report") -> "None":
    return None


def log_report_observer(report: "Report") -> "None":
    """
    emits the finished report at debug level.
    """
    logger.debug("metrics_report", report=report.to_dict())


def _parse_bound(value: "str | datetime | None", name: "str") -> "datetime | None":
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_aware(value)

    try:
        return parse_rfc3339(value)
    except ValueError as exc:
        raise ValidationError(f"invalid '{name}' timestamp format") from exc


class _Tally:
    __slots__ = ("tokens", "requests")

    def __init__(self) -> "None":
        self.tokens = 0
        self.requests = 0

    def add(self, tokens: "int") -> "None":
        self.tokens += tokens
        self.requests += 1


class MetricsAggregator:
    """
    MetricsAggregator turns a usage snapshot into a Report:
    grand totals, totals per model and an hourly time series.

    It keeps no state between calls. Every call builds its own
    accumulators, so a single instance can serve concurrent
    requests as long as each snapshot it is handed is immutable.

    Usage from different providers sharing a model name is merged
    into one entry, since the report is keyed by model name only.
    """

    def __init__(
        self,
        clock: "Clock" = utc_now,
        observer: "ReportObserver | None" = None,
    ) -> "None":
        self._clock = clock
        self._observer: "ReportObserver" = observer or noop_observer

    def resolve_window(
        self, query: "MetricsQuery"
    ) -> "tuple[datetime | None, datetime | None]":
        """
        validates the query bounds and returns the effective
        (lower, upper) window. None means unbounded on that side.
        Raises ValidationError for a malformed timestamp.
        """
        lower = _parse_bound(query.from_, "from")
        upper = _parse_bound(query.to, "to")

        if lower is None and upper is None:
            # evaluated per call, never cached
            upper = self._clock()
            lower = upper - DEFAULT_WINDOW

        return lower, upper

    def aggregate(self, snapshot: "Snapshot", query: "MetricsQuery") -> "Report":
        """
        aggregates every usage detail in snapshot matching query.
        Both window bounds are inclusive.
        """
        lower, upper = self.resolve_window(query)
        model_filter = query.model

        totals = _Tally()
        by_model: "dict[str, _Tally]" = {}
        # truncated instant -> (rendered bucket start, tally)
        buckets: "dict[datetime, tuple[str, _Tally]]" = {}

        for provider_snapshot in snapshot.values():
            for model_name, details in provider_snapshot.items():
                if model_filter and model_filter != model_name:
                    continue

                for detail in details:
                    if lower is not None and detail.timestamp < lower:
                        continue
                    if upper is not None and detail.timestamp > upper:
                        continue

                    tokens = detail.total_tokens
                    totals.add(tokens)

                    model_tally = by_model.get(model_name)
                    if model_tally is None:
                        model_tally = by_model[model_name] = _Tally()
                    model_tally.add(tokens)

                    bucket_key = truncate_to_hour(detail.timestamp)
                    bucket = buckets.get(bucket_key)
                    if bucket is None:
                        bucket = buckets[bucket_key] = (
                            format_rfc3339(bucket_key),
                            _Tally(),
                        )
                    bucket[1].add(tokens)

        # dict order follows traversal order, sort explicitly
        report = Report(
            totals=Totals(tokens=totals.tokens, requests=totals.requests),
            by_model=tuple(
                sorted(
                    (
                        ModelMetric(model=name, tokens=t.tokens, requests=t.requests)
                        for name, t in by_model.items()
                    ),
                    key=lambda m: m.model,
                )
            ),
            timeseries=tuple(
                sorted(
                    (
                        TimeseriesBucket(
                            bucket_start=start, tokens=t.tokens, requests=t.requests
                        )
                        for start, t in buckets.values()
                    ),
                    key=lambda b: b.bucket_start,
                )
            ),
        )

        # a failing observer must not change the returned report
        try:
            self._observer(report)
        except Exception:
            logger.exception("report_observer_failed")
        return report


def aggregate(
    snapshot: "Snapshot",
    query: "MetricsQuery",
    observer: "ReportObserver | None" = None,
) -> "Report":
    """
    shorthand for MetricsAggregator(observer=observer).aggregate(...)
    using the system clock.
    """
    return MetricsAggregator(observer=observer).aggregate(snapshot, query)

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True, slots=True)
class UsageDetail:
    """
    UsageDetail represents one request served by
    the proxy for a given provider and model.
    """

    # timezone-aware instant the request was recorded at
    timestamp: "datetime"
    total_tokens: "int"
    input_tokens: "int" = 0
    output_tokens: "int" = 0

    def __post_init__(self) -> "None":
        if self.timestamp.tzinfo is None or self.timestamp.utcoffset() is None:
            raise ValueError("UsageDetail.timestamp must be timezone-aware")
        if self.total_tokens < 0:
            raise ValueError("UsageDetail.total_tokens must not be negative")


# provider -> model -> details
ModelSnapshot = tuple[UsageDetail, ...]
ProviderSnapshot = Mapping[str, ModelSnapshot]
Snapshot = Mapping[str, ProviderSnapshot]

EMPTY_SNAPSHOT: "Snapshot" = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class MetricsQuery:
    """
    MetricsQuery carries the raw, caller-supplied filters
    of a report request. Timestamps stay strings until the
    aggregator validates them; empty values mean "not set".
    """

    from_: "str | datetime | None" = None
    to: "str | datetime | None" = None
    model: "str" = ""


@dataclass(frozen=True, slots=True)
class Totals:
    tokens: "int" = 0
    requests: "int" = 0

    def to_dict(self) -> "dict[str, int]":
        return {"tokens": self.tokens, "requests": self.requests}


@dataclass(frozen=True, slots=True)
class ModelMetric:
    model: "str"
    tokens: "int"
    requests: "int"

    def to_dict(self) -> "dict[str, str | int]":
        return {"model": self.model, "tokens": self.tokens, "requests": self.requests}


@dataclass(frozen=True, slots=True)
class TimeseriesBucket:
    # RFC 3339 rendering of the start of the hour
    bucket_start: "str"
    tokens: "int"
    requests: "int"

    def to_dict(self) -> "dict[str, str | int]":
        return {
            "bucket_start": self.bucket_start,
            "tokens": self.tokens,
            "requests": self.requests,
        }


@dataclass(frozen=True, slots=True)
class Report:
    """
    Report is the result of aggregating a snapshot: grand
    totals, per-model totals sorted by model name, and an
    hourly time series sorted by bucket start.
    """

    totals: "Totals" = field(default_factory=Totals)
    by_model: "tuple[ModelMetric, ...]" = ()
    timeseries: "tuple[TimeseriesBucket, ...]" = ()

    def to_dict(self) -> "dict[str, object]":
        return {
            "totals": self.totals.to_dict(),
            "by_model": [m.to_dict() for m in self.by_model],
            "timeseries": [b.to_dict() for b in self.timeseries],
        }

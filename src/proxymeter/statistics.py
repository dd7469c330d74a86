import json
import threading
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Protocol

import structlog

from proxymeter.errors import SnapshotLoadError
from proxymeter.metrics import MetricsUpdater
from proxymeter.models import ProviderSnapshot, Snapshot, UsageDetail
from proxymeter.timestamps import parse_rfc3339

logger = structlog.get_logger()


class SnapshotSource(Protocol):
    """
    SnapshotSource is anything that can hand out a consistent,
    immutable point-in-time copy of recorded usage.
    """

    def snapshot(self) -> "Snapshot": ...


class RequestStatistics:
    """
    RequestStatistics: Is a thread-safe, in-process store for the
    usage the proxy records, organised as provider -> model -> details.
    It is meant to be embedded in the proxy, which calls record() once
    per served request; the standalone server only sees imported usage.

    snapshot() copies the store under the lock into read-only
    mappings of tuples, so readers never observe a detail appearing
    mid-traversal. Supports time-based eviction via evict_before()
    to prevent unbounded memory growth.
    """

    def __init__(self, metrics_updater: "MetricsUpdater | None" = None) -> "None":
        self._lock: "threading.Lock" = threading.Lock()
        self._apis: "dict[str, dict[str, list[UsageDetail]]]" = {}
        self._metrics = metrics_updater

    def record(self, provider: "str", model: "str", detail: "UsageDetail") -> "None":
        """
        appends a single request's usage under provider and model.
        """
        with self._lock:
            self._apis.setdefault(provider, {}).setdefault(model, []).append(detail)

        if self._metrics is not None:
            self._metrics.observe_recorded(provider, model, detail.total_tokens)

    def merge_snapshot(self, snapshot: "Snapshot") -> "int":
        """
        imports every detail of snapshot into the store.
        Returns the number of imported details.
        """
        imported = 0
        with self._lock:
            for provider, models in snapshot.items():
                provider_models = self._apis.setdefault(provider, {})
                for model, details in models.items():
                    provider_models.setdefault(model, []).extend(details)
                    imported += len(details)
        return imported

    def snapshot(self) -> "Snapshot":
        """
        returns an immutable copy of everything recorded so far.
        """
        with self._lock:
            return MappingProxyType(
                {
                    provider: MappingProxyType(
                        {model: tuple(details) for model, details in models.items()}
                    )
                    for provider, models in self._apis.items()
                }
            )

    def detail_count(self) -> "int":
        with self._lock:
            return sum(
                len(details)
                for models in self._apis.values()
                for details in models.values()
            )

    def evict_before(self, cutoff: "datetime") -> "int":
        """
        removes all details recorded strictly before cutoff, dropping
        models and providers left empty. Returns the number of evicted
        details.
        """
        evicted = 0
        with self._lock:
            for provider in list(self._apis):
                models = self._apis[provider]
                for model in list(models):
                    kept = [d for d in models[model] if d.timestamp >= cutoff]
                    evicted += len(models[model]) - len(kept)
                    if kept:
                        models[model] = kept
                    else:
                        del models[model]
                if not models:
                    del self._apis[provider]
        return evicted


def _int_field(raw: "dict[str, Any]", key: "str") -> "int":
    value = raw.get(key, 0)
    # bool is an int subclass but never a token count
    if isinstance(value, bool) or not isinstance(value, int):
        raise SnapshotLoadError(f"'{key}' must be an integer, got {value!r}")
    return value


def _detail_from_dict(raw: "Any") -> "UsageDetail":
    if not isinstance(raw, dict):
        raise SnapshotLoadError(f"usage detail must be an object, got {raw!r}")

    timestamp = raw.get("timestamp")
    if not isinstance(timestamp, str):
        raise SnapshotLoadError("usage detail is missing a 'timestamp' string")
    try:
        parsed = parse_rfc3339(timestamp)
    except ValueError as exc:
        raise SnapshotLoadError(f"invalid detail timestamp {timestamp!r}") from exc

    tokens = raw.get("tokens", {})
    if not isinstance(tokens, dict):
        raise SnapshotLoadError("'tokens' must be an object")

    try:
        return UsageDetail(
            timestamp=parsed,
            total_tokens=_int_field(tokens, "total_tokens"),
            input_tokens=_int_field(tokens, "input_tokens"),
            output_tokens=_int_field(tokens, "output_tokens"),
        )
    except ValueError as exc:
        raise SnapshotLoadError(str(exc)) from exc


def snapshot_from_dict(data: "Any") -> "Snapshot":
    """
    builds a Snapshot from an exported usage document shaped like
    {"apis": {provider: {"models": {model: {"details": [...]}}}}}.
    """
    if not isinstance(data, dict) or not isinstance(data.get("apis", {}), dict):
        raise SnapshotLoadError("snapshot document must contain an 'apis' object")

    apis: "dict[str, ProviderSnapshot]" = {}
    for provider, api in data.get("apis", {}).items():
        models = api.get("models", {}) if isinstance(api, dict) else None
        if not isinstance(models, dict):
            raise SnapshotLoadError(f"provider {provider!r} has no 'models' object")

        provider_models: "dict[str, tuple[UsageDetail, ...]]" = {}
        for model, model_data in models.items():
            details = (
                model_data.get("details", []) if isinstance(model_data, dict) else None
            )
            if not isinstance(details, list):
                raise SnapshotLoadError(
                    f"model {model!r} of provider {provider!r} has no 'details' list"
                )
            provider_models[model] = tuple(_detail_from_dict(d) for d in details)

        apis[provider] = MappingProxyType(provider_models)

    return MappingProxyType(apis)


def load_snapshot_file(path: "str | Path") -> "Snapshot":
    """
    reads an exported usage snapshot from a JSON file.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as exc:
        raise SnapshotLoadError(f"cannot read snapshot file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SnapshotLoadError(f"snapshot file {path} is not valid JSON: {exc}") from exc

    snapshot = snapshot_from_dict(data)
    logger.debug("snapshot_file_loaded", path=str(path), providers=len(snapshot))
    return snapshot

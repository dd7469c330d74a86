from types import MappingProxyType
from typing import Callable

import pytest
from prometheus_client import CollectorRegistry

from proxymeter.models import Snapshot, UsageDetail
from proxymeter.timestamps import parse_rfc3339

# provider -> model -> [(timestamp, total_tokens), ...]
RawSnapshot = dict[str, dict[str, list[tuple[str, int]]]]


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def build_snapshot() -> "Callable[[RawSnapshot], Snapshot]":
    """
    builds an immutable Snapshot from plain (timestamp, tokens) tuples.
    """

    def _build(raw: "RawSnapshot") -> "Snapshot":
        return MappingProxyType(
            {
                provider: MappingProxyType(
                    {
                        model: tuple(
                            UsageDetail(
                                timestamp=parse_rfc3339(ts), total_tokens=tokens
                            )
                            for ts, tokens in details
                        )
                        for model, details in models.items()
                    }
                )
                for provider, models in raw.items()
            }
        )

    return _build


@pytest.fixture()
def scenario_snapshot(build_snapshot: "Callable[[RawSnapshot], Snapshot]") -> "Snapshot":
    return build_snapshot(
        {
            "P1": {
                "gpt": [
                    ("2024-01-01T10:05:00Z", 100),
                    ("2024-01-01T10:50:00Z", 50),
                ],
                "claude": [("2024-01-01T11:10:00Z", 200)],
            }
        }
    )

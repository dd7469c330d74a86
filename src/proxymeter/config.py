import os
from dataclasses import dataclass

_TRUTHY = ("1", "true", "yes", "on")


def _env_int(name: "str", default: "int") -> "int":
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise SystemExit(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class Config:
    # listen_address: format ":8317" or
    # "0.0.0.0:8317"
    listen_address: "str" = ":8317"
    # where the Prometheus exporter listens, same format
    telemetry_address: "str" = ":9186"
    log_level: "str" = "info"

    # how long recorded usage is kept in memory
    retention_hours: "int" = 168
    # retention sweep interval in seconds
    sweep_interval: "int" = 300

    # optional exported snapshot to import at startup
    snapshot_file: "str" = ""
    # log every computed report at debug level
    debug_report: "bool" = False

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            retention_hours=_env_int("PROXYMETER_RETENTION_HOURS", 168),
            snapshot_file=os.environ.get("PROXYMETER_SNAPSHOT_FILE", ""),
            debug_report=os.environ.get("PROXYMETER_DEBUG_REPORT", "").lower()
            in _TRUTHY,
        )

    @property
    def snapshot_enabled(self) -> "bool":
        return bool(self.snapshot_file)

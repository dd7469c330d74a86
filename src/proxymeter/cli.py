import argparse

from proxymeter.config import Config


def parse_args(argv: "list[str] | None" = None) -> "Config":
    config = Config.from_env()

    parser = argparse.ArgumentParser(
        prog="proxymeter",
        description="Usage metrics reports for a multi-provider API proxy",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default=config.listen_address,
        help="Address to serve reports on (default: :8317)",
    )
    parser.add_argument(
        "--telemetry.listen-address",
        dest="telemetry_address",
        default=config.telemetry_address,
        help="Address to expose Prometheus metrics on (default: :9186)",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default=config.log_level,
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--retention.hours",
        dest="retention_hours",
        type=int,
        default=config.retention_hours,
        help="Hours of recorded usage to keep (default: 168)",
    )
    parser.add_argument(
        "--sweep.interval",
        dest="sweep_interval",
        type=int,
        default=config.sweep_interval,
        help="Retention sweep interval in seconds (default: 300)",
    )
    parser.add_argument(
        "--snapshot.file",
        dest="snapshot_file",
        default=config.snapshot_file,
        help="Exported usage snapshot (JSON) to import at startup",
    )
    parser.add_argument(
        "--debug.report",
        dest="debug_report",
        action="store_true",
        default=config.debug_report,
        help="Log every computed report at debug level",
    )

    args = parser.parse_args(argv)
    config.listen_address = args.listen_address
    config.telemetry_address = args.telemetry_address
    config.log_level = args.log_level
    config.retention_hours = args.retention_hours
    config.sweep_interval = args.sweep_interval
    config.snapshot_file = args.snapshot_file
    config.debug_report = args.debug_report
    return config

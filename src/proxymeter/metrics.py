from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram


class MetricsUpdater:
    """
    owns proxymeter's own Prometheus metrics: what the usage
    store has recorded and how report requests are doing.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._registry: "CollectorRegistry" = registry
        self._recorded_requests: "Counter" = Counter(
            "proxymeter_recorded_requests_total",
            "Total requests recorded by the usage store",
            ["provider", "model"],
            registry=registry,
        )
        self._recorded_tokens: "Counter" = Counter(
            "proxymeter_recorded_tokens_total",
            "Total tokens recorded by the usage store",
            ["provider", "model"],
            registry=registry,
        )
        self._report_duration: "Histogram" = Histogram(
            "proxymeter_report_duration_seconds",
            "Duration of metrics report aggregation",
            registry=registry,
        )
        self._report_errors: "Counter" = Counter(
            "proxymeter_report_errors_total",
            "Total number of rejected report requests by reason",
            ["reason"],
            registry=registry,
        )
        self._retained_details: "Gauge" = Gauge(
            "proxymeter_retained_details",
            "Number of usage details held after the last retention sweep",
            registry=registry,
        )

    def observe_recorded(self, provider: "str", model: "str", tokens: "int") -> "None":
        """
        counts one recorded request and its tokens.
        """
        labels = {"provider": provider, "model": model}
        self._recorded_requests.labels(**labels).inc()
        self._recorded_tokens.labels(**labels).inc(tokens)

    def observe_report_duration(self, duration_seconds: "float") -> "None":
        self._report_duration.observe(duration_seconds)

    def inc_report_error(self, reason: "str") -> "None":
        self._report_errors.labels(reason=reason).inc()

    def set_retained_details(self, count: "int") -> "None":
        self._retained_details.set(count)

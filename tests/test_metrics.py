from prometheus_client import CollectorRegistry

from proxymeter.metrics import MetricsUpdater


class TestMetricsUpdater:
    def test_metric_families_are_created(
        self,
        registry: "CollectorRegistry",
    ) -> "None":
        MetricsUpdater(registry=registry)
        # prometheus_client strips _total suffix from Counter family names
        metric_names = [m.name for m in registry.collect()]
        assert "proxymeter_recorded_requests" in metric_names
        assert "proxymeter_recorded_tokens" in metric_names
        assert "proxymeter_report_duration_seconds" in metric_names
        assert "proxymeter_report_errors" in metric_names
        assert "proxymeter_retained_details" in metric_names

    def test_observe_recorded_increments_counters(
        self,
        registry: "CollectorRegistry",
    ) -> "None":
        updater = MetricsUpdater(registry=registry)
        updater.observe_recorded("openai", "gpt-4o", 100)
        updater.observe_recorded("openai", "gpt-4o", 50)

        labels = {"provider": "openai", "model": "gpt-4o"}
        requests_value = registry.get_sample_value(
            "proxymeter_recorded_requests_total", labels
        )
        tokens_value = registry.get_sample_value(
            "proxymeter_recorded_tokens_total", labels
        )
        assert requests_value == 2.0
        assert tokens_value == 150.0

    def test_report_metrics_update(
        self,
        registry: "CollectorRegistry",
    ) -> "None":
        updater = MetricsUpdater(registry=registry)

        updater.observe_report_duration(0.25)
        updater.inc_report_error("validation")
        updater.set_retained_details(42)

        assert registry.get_sample_value("proxymeter_report_duration_seconds_count") == 1.0
        assert (
            registry.get_sample_value(
                "proxymeter_report_errors_total", {"reason": "validation"}
            )
            == 1.0
        )
        assert registry.get_sample_value("proxymeter_retained_details") == 42.0

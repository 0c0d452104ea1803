"""Tests for the Prometheus collector, registry and WSGI endpoint."""

import pytest
from prometheus_client import generate_latest
from prometheus_client.parser import text_string_to_metric_families

from ecobee_exporter.catalog import build_catalog
from ecobee_exporter.client import EcobeeApiError
from ecobee_exporter.collector import ScrapeTranslator
from ecobee_exporter.exporter import EcobeeCollector, build_registry
from ecobee_exporter.server import make_app
from tests.conftest import FakeSource


def _collector(source: FakeSource, prefix: str = "ecobee") -> EcobeeCollector:
    return EcobeeCollector(ScrapeTranslator(source, build_catalog(prefix)))


def _samples(registry) -> dict[tuple[str, frozenset], float]:
    text = generate_latest(registry).decode()
    return {
        (s.name, frozenset(s.labels.items())): s.value
        for family in text_string_to_metric_families(text)
        for s in family.samples
    }


def _call(app, path: str) -> tuple[str, dict[str, str], bytes]:
    seen = {}

    def start_response(status, headers):
        seen["status"] = status
        seen["headers"] = dict(headers)

    body = b"".join(app({"PATH_INFO": path, "REQUEST_METHOD": "GET"}, start_response))
    return seen["status"], seen["headers"], body


# ---------------------------------------------------------------------------
# EcobeeCollector
# ---------------------------------------------------------------------------


class TestEcobeeCollector:
    def test_describe_lists_every_family_without_scraping(self):
        source = FakeSource()
        families = _collector(source).describe()
        assert len(families) == 25
        assert all(f.samples == [] for f in families)
        assert source.selections == []

    def test_registration_does_not_scrape(self):
        source = FakeSource()
        build_registry(_collector(source), process_metrics=False)
        assert source.selections == []

    def test_each_exposition_scrapes_once(self, thermostats):
        source = FakeSource(thermostats)
        registry = build_registry(_collector(source), process_metrics=False)
        generate_latest(registry)
        generate_latest(registry)
        assert len(source.selections) == 2

    def test_exposition_values(self, thermostats):
        registry = build_registry(_collector(FakeSource(thermostats)), process_metrics=False)
        samples = _samples(registry)
        hallway = {("thermostat_id", "411960412345"), ("thermostat_name", "Hallway")}

        assert samples[("ecobee_actual_temperature", frozenset(hallway))] == 70.5
        assert samples[("ecobee_comp_cool1", frozenset(hallway))] == 1.0
        assert samples[("ecobee_currenthvacmode", frozenset(hallway | {("current_hvac_mode", "auto")}))] == 0.0
        assert samples[("ecobee_equipment_running", frozenset(hallway | {("name", "heat pump 1")}))] == 0.0

    def test_help_text_in_exposition(self, thermostats):
        registry = build_registry(_collector(FakeSource(thermostats)), process_metrics=False)
        text = generate_latest(registry).decode()
        assert "# HELP ecobee_fetch_time elapsed time fetching data via Ecobee API" in text
        assert "# TYPE ecobee_in_use gauge" in text

    def test_failed_fetch_exposes_fetch_time_only(self):
        collector = _collector(FakeSource(error=EcobeeApiError("down")))
        registry = build_registry(collector, process_metrics=False)
        names = {name for name, _ in _samples(registry)}
        assert names == {"ecobee_fetch_time"}
        assert collector.last_stats.ok is False

    def test_process_metrics_optional(self):
        with_process = generate_latest(build_registry(_collector(FakeSource()))).decode()
        without = generate_latest(build_registry(_collector(FakeSource()), process_metrics=False)).decode()
        assert "python_info" in with_process
        assert "python_info" not in without

    def test_two_prefixes_share_a_registry(self, thermostats):
        registry = build_registry(_collector(FakeSource(thermostats), "up"), process_metrics=False)
        registry.register(_collector(FakeSource(thermostats), "down"))
        names = {name for name, _ in _samples(registry)}
        assert "up_fetch_time" in names
        assert "down_fetch_time" in names

    def test_same_prefix_twice_is_rejected(self):
        registry = build_registry(_collector(FakeSource()), process_metrics=False)
        with pytest.raises(ValueError, match="Duplicated timeseries"):
            registry.register(_collector(FakeSource()))


# ---------------------------------------------------------------------------
# WSGI app
# ---------------------------------------------------------------------------


class TestMakeApp:
    @pytest.fixture()
    def app(self, thermostats):
        registry = build_registry(_collector(FakeSource(thermostats)), process_metrics=False)
        return make_app(registry, "/metrics")

    def test_metrics(self, app):
        status, headers, body = _call(app, "/metrics")
        assert status == "200 OK"
        assert headers["Content-Type"].startswith("text/plain")
        assert b"ecobee_fetch_time" in body

    def test_healthz(self, app):
        status, _, body = _call(app, "/healthz")
        assert status == "200 OK"
        assert body == b"ok"

    def test_unknown_path(self, app):
        status, _, _ = _call(app, "/")
        assert status.startswith("404")

    def test_custom_telemetry_path(self, thermostats):
        registry = build_registry(_collector(FakeSource(thermostats)), process_metrics=False)
        app = make_app(registry, "/readings")
        assert _call(app, "/readings")[0] == "200 OK"
        assert _call(app, "/metrics")[0].startswith("404")

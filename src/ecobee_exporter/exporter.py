"""Prometheus integration for the scrape translator.

:class:`EcobeeCollector` follows prometheus_client's custom-collector
protocol: ``describe()`` announces every metric family at registration time
and ``collect()`` runs one scrape per exposition request.

    collector = EcobeeCollector(ScrapeTranslator(client, build_catalog("ecobee")))
    registry = build_registry(collector)
    print(generate_latest(registry).decode())
"""

from __future__ import annotations

from collections.abc import Iterator

from prometheus_client import CollectorRegistry
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.platform_collector import PlatformCollector
from prometheus_client.process_collector import ProcessCollector

from ecobee_exporter.collector import ScrapeStats, ScrapeTranslator
from ecobee_exporter.sink import GaugeFamilySink


class EcobeeCollector:
    """prometheus_client collector backed by a :class:`ScrapeTranslator`."""

    def __init__(self, translator: ScrapeTranslator) -> None:
        self._translator = translator
        self.last_stats: ScrapeStats | None = None

    def describe(self) -> list[GaugeMetricFamily]:
        return [
            GaugeMetricFamily(d.name, d.help, labels=list(d.label_names))
            for d in self._translator.describe()
        ]

    def collect(self) -> Iterator[GaugeMetricFamily]:
        sink = GaugeFamilySink()
        self._translator.declare(sink)
        self.last_stats = self._translator.collect(sink)
        yield from sink.families()


def build_registry(collector: EcobeeCollector, *, process_metrics: bool = True) -> CollectorRegistry:
    """Return a fresh registry holding *collector* (plus process/platform metrics)."""
    registry = CollectorRegistry()
    if process_metrics:
        ProcessCollector(registry=registry)
        PlatformCollector(registry=registry)
    registry.register(collector)
    return registry

"""Scrape translator: one API fetch → a flat batch of gauge observations.

``ScrapeTranslator.collect(sink)`` is the single entry point.  Per scrape it:

1. Fetches all registered thermostats from the data source (one call).
2. Emits ``fetch_time`` — always, even when the fetch failed.
3. Stops there if the fetch raised :class:`~ecobee_exporter.client.EcobeeError`.
4. For every *connected* thermostat emits runtime temperatures, the HVAC
   mode marker, the equipment channels (through ``equipment_running`` and
   through each channel's own metric) and the outside temperature.
5. For every remote sensor, connected or not, emits ``in_use`` and one
   gauge per parseable capability.

A value that fails to parse is logged and skipped; its siblings are still
emitted.  Nothing is kept between scrapes except the immutable catalog.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from ecobee_exporter.capabilities import (
    PARSERS,
    CapabilityKind,
    CapabilityValueError,
    temp_in_c,
    temp_in_f,
)
from ecobee_exporter.catalog import Catalog, MetricDescriptor
from ecobee_exporter.client import EcobeeError, ThermostatSource
from ecobee_exporter.logging import get_logger
from ecobee_exporter.models.thermostat import RemoteSensor, Selection, Thermostat
from ecobee_exporter.sink import Sink

_log = get_logger(__name__)


def is_thing_running(values: list[int]) -> float:
    """1.0 if any run-duration sample is positive, else 0.0."""
    return 1.0 if any(v > 0 for v in values) else 0.0


@dataclass(frozen=True)
class EquipmentChannel:
    """One extended-runtime sequence and where its running flag is reported."""

    field: str  # attribute on ExtendedRuntime
    stage: str  # value of the equipment_running "name" label
    metric: MetricDescriptor


@dataclass(frozen=True)
class ScrapeStats:
    """Summary returned by :meth:`ScrapeTranslator.collect`.

    Attributes:
        ok:             False when the data-source call failed.
        fetch_seconds:  Value emitted as ``fetch_time``.
        thermostats:    Snapshots returned by the data source.
        connected:      Of those, how many reported ``runtime.connected``.
        sensors:        Remote sensors walked across all thermostats.
        rejected:       Field-local values logged and skipped.
    """

    ok: bool
    fetch_seconds: float
    thermostats: int = 0
    connected: int = 0
    sensors: int = 0
    rejected: int = 0


class ScrapeTranslator:
    """Translates thermostat snapshots into gauge observations.

    Args:
        source:    Data source queried once per scrape.
        catalog:   Descriptors to emit against; shared read-only across scrapes.
        selection: Query options; defaults to :meth:`Selection.registered`.
        clock:     Monotonic timer used for ``fetch_time``.
    """

    def __init__(
        self,
        source: ThermostatSource,
        catalog: Catalog,
        *,
        selection: Selection | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._source = source
        self._catalog = catalog
        self._selection = selection if selection is not None else Selection.registered()
        self._clock = clock
        # Scrapes may arrive concurrently from a threaded HTTP server.
        self._lock = threading.Lock()

        c = catalog
        self._equipment: tuple[EquipmentChannel, ...] = (
            EquipmentChannel("aux_heat1", "heat 1", c.aux_heat1),
            EquipmentChannel("aux_heat2", "heat 2", c.aux_heat2),
            EquipmentChannel("aux_heat3", "heat 3", c.aux_heat3),
            EquipmentChannel("cool1", "cooling 1", c.comp_cool1),
            EquipmentChannel("cool2", "cooling 2", c.comp_cool2),
            EquipmentChannel("heat_pump1", "heat pump 1", c.heat_pump1),
            EquipmentChannel("heat_pump2", "heat pump 2", c.heat_pump2),
            EquipmentChannel("fan", "fan", c.fan),
        )
        capability_metrics = {
            CapabilityKind.TEMPERATURE: c.temperature,
            CapabilityKind.HUMIDITY: c.humidity,
            CapabilityKind.OCCUPANCY: c.occupancy,
            CapabilityKind.VOC_PPM: c.voc,
            CapabilityKind.CO2_PPM: c.co2,
            CapabilityKind.AIR_QUALITY_ACCURACY: c.air_quality_accuracy,
            CapabilityKind.AIR_QUALITY: c.air_quality,
            CapabilityKind.AIR_PRESSURE: c.air_pressure,
        }
        self._handlers = {
            kind: (metric, PARSERS[kind]) for kind, metric in capability_metrics.items()
        }

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def describe(self) -> Iterator[MetricDescriptor]:
        return self._catalog.describe()

    def declare(self, sink: Sink) -> None:
        """Declare every catalog descriptor on *sink*."""
        for descriptor in self._catalog.describe():
            sink.declare(descriptor)

    # ------------------------------------------------------------------
    # Scrape
    # ------------------------------------------------------------------

    def collect(self, sink: Sink) -> ScrapeStats:
        """Run one scrape, emitting every derivable observation to *sink*.

        *sink* must already have the catalog declared (see :meth:`declare`).
        """
        with self._lock:
            return self._collect(sink)

    def _collect(self, sink: Sink) -> ScrapeStats:
        thermostats: list[Thermostat] | None = None
        start = self._clock()
        try:
            thermostats = self._source.fetch_thermostats(self._selection)
        except EcobeeError as exc:
            _log.error("thermostat fetch failed", error=str(exc), error_type=type(exc).__name__)
        finally:
            # Emitted even when an unexpected error is about to propagate.
            elapsed = self._clock() - start
            sink.emit(self._catalog.fetch_time, elapsed, ())

        if thermostats is None:
            return ScrapeStats(ok=False, fetch_seconds=elapsed)

        connected = sensors = rejected = 0
        for thermostat in thermostats:
            t_labels = (thermostat.identifier, thermostat.name)
            if thermostat.connected:
                connected += 1
                self._emit_runtime(sink, thermostat, t_labels)
            for sensor in thermostat.remote_sensors:
                sensors += 1
                rejected += self._emit_sensor(sink, sensor, t_labels)

        _log.debug(
            "scrape complete",
            thermostats=len(thermostats),
            connected=connected,
            sensors=sensors,
            rejected=rejected,
            fetch_seconds=round(elapsed, 3),
        )
        return ScrapeStats(
            ok=True,
            fetch_seconds=elapsed,
            thermostats=len(thermostats),
            connected=connected,
            sensors=sensors,
            rejected=rejected,
        )

    def _emit_runtime(self, sink: Sink, thermostat: Thermostat, t_labels: tuple[str, str]) -> None:
        c = self._catalog
        runtime = thermostat.runtime
        forecasts = thermostat.weather.forecasts

        for forecast in forecasts:
            _log.info(
                "weather forecast",
                thermostat_id=thermostat.identifier,
                at=forecast.date_time,
                temperature_c=temp_in_c(forecast.temperature) if forecast.temperature is not None else None,
            )

        for metric, raw in (
            (c.actual_temperature, runtime.actual_temperature),
            (c.target_temperature_max, runtime.desired_cool),
            (c.target_temperature_min, runtime.desired_heat),
        ):
            if raw is None:
                _log.debug("runtime reading absent", thermostat_id=thermostat.identifier, metric=metric.name)
                continue
            sink.emit(metric, temp_in_f(raw), t_labels)

        hvac_mode = thermostat.settings.hvac_mode
        if hvac_mode is not None:
            # The mode is the label; the value is only a presence marker.
            sink.emit(c.current_hvac_mode, 0.0, (*t_labels, hvac_mode))

        extended = thermostat.extended_runtime
        running = [(ch, is_thing_running(getattr(extended, ch.field))) for ch in self._equipment]
        for channel, flag in running:
            sink.emit(c.equipment_running, flag, (*t_labels, channel.stage))

        outside = forecasts[0].temperature if forecasts else None
        if outside is not None:
            sink.emit(c.outside_temperature_fahrenheit, temp_in_f(outside), t_labels)
            sink.emit(c.outside_temperature, temp_in_c(outside), t_labels)
        else:
            _log.debug("no weather forecast", thermostat_id=thermostat.identifier)

        for channel, flag in running:
            sink.emit(channel.metric, flag, t_labels)

    def _emit_sensor(self, sink: Sink, sensor: RemoteSensor, t_labels: tuple[str, str]) -> int:
        """Emit one sensor's gauges and return how many values were rejected."""
        s_labels = (*t_labels, sensor.id, sensor.name, sensor.type)
        sink.emit(self._catalog.in_use, 1.0 if sensor.in_use else 0.0, s_labels)

        rejected = 0
        for capability in sensor.capability:
            kind = CapabilityKind.from_tag(capability.type)
            if kind is CapabilityKind.UNRECOGNIZED:
                _log.info("ignoring sensor capability", capability=capability.type, sensor_id=sensor.id)
                continue

            metric, parse = self._handlers[kind]
            try:
                value = parse(capability.value)
            except CapabilityValueError as exc:
                _log.error(
                    "capability value rejected",
                    capability=capability.type,
                    value=capability.value,
                    sensor_id=sensor.id,
                    error=str(exc),
                )
                rejected += 1
                continue

            if value is None:
                continue  # "unknown": no reading yet
            sink.emit(metric, value, s_labels)
        return rejected

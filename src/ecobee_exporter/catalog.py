"""Metric catalog — every gauge the exporter can produce, fixed up front.

``build_catalog(prefix)`` returns a frozen :class:`Catalog` holding one
:class:`MetricDescriptor` per metric, each named ``{prefix}_{suffix}``.
The catalog is built once per collector and never depends on scrape data,
so ``Catalog.describe()`` yields the same descriptors in the same order
whether or not a scrape has ever run.

Label groups
------------
runtime            thermostat_id, thermostat_name
equipment_running  runtime + name (stage label such as "heat 1" or "fan")
currenthvacmode    thermostat_id, thermostat_name, current_hvac_mode
sensor             runtime + sensor_id, sensor_name, sensor_type

Prometheus rejects duplicate metric names within one registry; two
collectors registered side by side need different prefixes.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, fields

RUNTIME_LABELS: tuple[str, ...] = ("thermostat_id", "thermostat_name")
EQUIPMENT_LABELS: tuple[str, ...] = (*RUNTIME_LABELS, "name")
HVAC_MODE_LABELS: tuple[str, ...] = (*RUNTIME_LABELS, "current_hvac_mode")
SENSOR_LABELS: tuple[str, ...] = (*RUNTIME_LABELS, "sensor_id", "sensor_name", "sensor_type")


@dataclass(frozen=True)
class MetricDescriptor:
    """Identity of one gauge: name, help text and ordered label names."""

    name: str
    help: str
    label_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class Catalog:
    """All descriptors for one collector instance.

    Field order is the order ``describe()`` yields them in.
    """

    # per-query
    fetch_time: MetricDescriptor

    # thermostat runtime
    actual_temperature: MetricDescriptor
    target_temperature_max: MetricDescriptor
    target_temperature_min: MetricDescriptor

    # remote sensors
    temperature: MetricDescriptor
    humidity: MetricDescriptor
    voc: MetricDescriptor
    co2: MetricDescriptor
    air_quality: MetricDescriptor
    air_quality_accuracy: MetricDescriptor
    air_pressure: MetricDescriptor
    occupancy: MetricDescriptor
    in_use: MetricDescriptor

    current_hvac_mode: MetricDescriptor

    # outside air
    outside_temperature: MetricDescriptor
    outside_temperature_fahrenheit: MetricDescriptor

    # equipment
    equipment_running: MetricDescriptor
    aux_heat1: MetricDescriptor
    aux_heat2: MetricDescriptor
    aux_heat3: MetricDescriptor
    comp_cool1: MetricDescriptor
    comp_cool2: MetricDescriptor
    heat_pump1: MetricDescriptor
    heat_pump2: MetricDescriptor
    fan: MetricDescriptor

    def describe(self) -> Iterator[MetricDescriptor]:
        """Yield every descriptor exactly once, in declaration order."""
        for f in fields(self):
            yield getattr(self, f.name)


def build_catalog(prefix: str) -> Catalog:
    """Build the full descriptor set with every name scoped under *prefix*."""

    def new(suffix: str, help: str, label_names: tuple[str, ...] = ()) -> MetricDescriptor:
        return MetricDescriptor(name=f"{prefix}_{suffix}", help=help, label_names=label_names)

    return Catalog(
        fetch_time=new("fetch_time", "elapsed time fetching data via Ecobee API"),
        actual_temperature=new(
            "actual_temperature", "thermostat-averaged current temperature", RUNTIME_LABELS
        ),
        target_temperature_max=new(
            "target_temperature_max", "maximum temperature for thermostat to maintain", RUNTIME_LABELS
        ),
        target_temperature_min=new(
            "target_temperature_min", "minimum temperature for thermostat to maintain", RUNTIME_LABELS
        ),
        temperature=new("temperature", "temperature reported by a sensor in degrees", SENSOR_LABELS),
        humidity=new("humidity", "humidity reported by a sensor in percent", SENSOR_LABELS),
        voc=new("volitile_organic_compounds_ppm", "VOCs", SENSOR_LABELS),
        co2=new("carbon_dioxide_ppm", "CO2", SENSOR_LABELS),
        air_quality=new("air_quality", "air quality", SENSOR_LABELS),
        air_quality_accuracy=new("air_quality_accuracy", "air quality accuracy", SENSOR_LABELS),
        air_pressure=new("air_pressure", "air pressure reported by a sensor", SENSOR_LABELS),
        occupancy=new("occupancy", "occupancy reported by a sensor (0 or 1)", SENSOR_LABELS),
        in_use=new(
            "in_use", "is sensor being used in thermostat calculations (0 or 1)", SENSOR_LABELS
        ),
        current_hvac_mode=new(
            "currenthvacmode", "current hvac mode of thermostat", HVAC_MODE_LABELS
        ),
        outside_temperature=new(
            "outside_temperature", "current outside temperature (Celsius)", RUNTIME_LABELS
        ),
        outside_temperature_fahrenheit=new(
            "outside_temperature_fahrenheit", "current outside temperature (Fahrenheit)", RUNTIME_LABELS
        ),
        equipment_running=new(
            "equipment_running", "equipment currently running (1 for on, 0 for off)", EQUIPMENT_LABELS
        ),
        aux_heat1=new("aux_heat1", "Heat stage 1", RUNTIME_LABELS),
        aux_heat2=new("aux_heat2", "Heat stage 2", RUNTIME_LABELS),
        aux_heat3=new("aux_heat3", "Heat stage 3", RUNTIME_LABELS),
        comp_cool1=new("comp_cool1", "Cool stage 1", RUNTIME_LABELS),
        comp_cool2=new("comp_cool2", "Cool stage 2", RUNTIME_LABELS),
        heat_pump1=new("heat_pump1", "Heat pump stage 1", RUNTIME_LABELS),
        heat_pump2=new("heat_pump2", "Heat pump stage 2", RUNTIME_LABELS),
        fan=new("fan", "fan currently running (1 for on, 0 for off)", RUNTIME_LABELS),
    )

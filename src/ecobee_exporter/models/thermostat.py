"""Pydantic models for the ecobee ``/1/thermostat`` response (API v1).

Mirrors the nested JSON structure returned by the ecobee cloud exactly, for
the sub-objects the exporter requests: runtime, extendedRuntime, settings,
weather and remoteSensors.  Field names are snake_case in Python and
camelCase on the wire; both spellings are accepted when constructing models.

Real thermostat sample (trimmed):

    {
        "identifier": "411960412345",
        "name": "Hallway",
        "runtime": {"connected": true, "actualTemperature": 705,
                    "desiredHeat": 680, "desiredCool": 760},
        "extendedRuntime": {"auxHeat1": [0, 0, 0], "cool1": [0, 120, 300],
                            "fan": [0, 300, 300], ...},
        "settings": {"hvacMode": "auto"},
        "weather": {"forecasts": [{"dateTime": "2026-10-17 14:00:00",
                                   "temperature": 612}, ...]},
        "remoteSensors": [{"id": "rs:100", "name": "Bedroom", "type": "ecobee3_remote_sensor",
                           "inUse": true,
                           "capability": [{"id": "1", "type": "temperature", "value": "698"},
                                          {"id": "2", "type": "occupancy", "value": "false"}]}]
    }

Temperatures are integers in tenths of a degree Fahrenheit throughout.

Decoding is tolerant below the thermostat level: a remote sensor or
capability entry that fails validation is logged and dropped on its own,
null capability values become "" and null run-duration samples become 0.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ecobee_exporter.logging import get_logger

_log = get_logger(__name__)

_WIRE = ConfigDict(extra="ignore", populate_by_name=True)


def _each_valid(model: type[BaseModel], items: Any, entry: str) -> Any:
    """Validate list entries one by one, dropping (and logging) the ones that fail."""
    if not isinstance(items, list):
        return items
    kept = []
    for index, raw in enumerate(items):
        try:
            kept.append(model.model_validate(raw))
        except ValidationError as exc:
            first = exc.errors(include_url=False)[0]
            _log.error(
                "entry skipped",
                entry=entry,
                index=index,
                field=".".join(str(loc) for loc in first.get("loc", ())),
                error=first.get("msg", str(exc)),
            )
    return kept


class Runtime(BaseModel):
    model_config = _WIRE

    connected: bool = False
    # Absent while the thermostat is offline; the translator skips missing readings.
    actual_temperature: int | None = Field(default=None, alias="actualTemperature")
    desired_heat: int | None = Field(default=None, alias="desiredHeat")
    desired_cool: int | None = Field(default=None, alias="desiredCool")


class ExtendedRuntime(BaseModel):
    """Equipment run durations (seconds) for the last three 5-minute intervals."""

    model_config = _WIRE

    aux_heat1: list[int] = Field(default_factory=list, alias="auxHeat1")
    aux_heat2: list[int] = Field(default_factory=list, alias="auxHeat2")
    aux_heat3: list[int] = Field(default_factory=list, alias="auxHeat3")
    cool1: list[int] = Field(default_factory=list)
    cool2: list[int] = Field(default_factory=list)
    heat_pump1: list[int] = Field(default_factory=list, alias="heatPump1")
    heat_pump2: list[int] = Field(default_factory=list, alias="heatPump2")
    fan: list[int] = Field(default_factory=list)

    @field_validator(
        "aux_heat1", "aux_heat2", "aux_heat3", "cool1", "cool2", "heat_pump1", "heat_pump2", "fan",
        mode="before",
    )
    @classmethod
    def _null_is_zero(cls, v: Any) -> Any:
        # A null sample is an interval with no recorded run time.
        if v is None:
            return []
        if isinstance(v, list):
            return [0 if sample is None else sample for sample in v]
        return v


class ThermostatSettings(BaseModel):
    model_config = _WIRE

    hvac_mode: str | None = Field(default=None, alias="hvacMode")


class Forecast(BaseModel):
    model_config = _WIRE

    date_time: str = Field(default="", alias="dateTime")
    temperature: int | None = None


class Weather(BaseModel):
    model_config = _WIRE

    # Ordered; the first entry is the current conditions.
    forecasts: list[Forecast] = Field(default_factory=list)


class Capability(BaseModel):
    """One typed telemetry channel of a remote sensor.

    ``value`` is always a string on the wire, whatever its meaning: an int
    (temperature in tenths °F), a float, ``"true"``/``"false"``, or the
    literal ``"unknown"``.
    """

    model_config = _WIRE

    id: str = ""
    type: str
    value: str = ""

    @field_validator("id", "value", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        # Documented as string-only; null is "" and anything else its text form.
        if v is None:
            return ""
        if isinstance(v, bool):
            return str(v).lower()
        if not isinstance(v, str):
            return str(v)
        return v


class RemoteSensor(BaseModel):
    model_config = _WIRE

    id: str = ""
    name: str = ""
    type: str = ""
    in_use: bool = Field(default=False, alias="inUse")
    capability: list[Capability] = Field(default_factory=list)

    @field_validator("capability", mode="before")
    @classmethod
    def _valid_capabilities(cls, v: Any) -> Any:
        return _each_valid(Capability, v, "capability")


class Thermostat(BaseModel):
    """One thermostat snapshot, valid for the duration of a single scrape."""

    model_config = _WIRE

    identifier: str
    name: str = ""
    runtime: Runtime = Field(default_factory=Runtime)
    extended_runtime: ExtendedRuntime = Field(default_factory=ExtendedRuntime, alias="extendedRuntime")
    settings: ThermostatSettings = Field(default_factory=ThermostatSettings)
    weather: Weather = Field(default_factory=Weather)
    remote_sensors: list[RemoteSensor] = Field(default_factory=list, alias="remoteSensors")

    @field_validator("remote_sensors", mode="before")
    @classmethod
    def _valid_sensors(cls, v: Any) -> Any:
        return _each_valid(RemoteSensor, v, "remote sensor")

    @property
    def connected(self) -> bool:
        return self.runtime.connected


class Selection(BaseModel):
    """Query options controlling which sub-objects the API includes.

    Serialise with ``model_dump(by_alias=True)`` to get the wire form.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    selection_type: str = Field(default="registered", alias="selectionType")
    selection_match: str = Field(default="", alias="selectionMatch")
    include_sensors: bool = Field(default=False, alias="includeSensors")
    include_runtime: bool = Field(default=False, alias="includeRuntime")
    include_extended_runtime: bool = Field(default=False, alias="includeExtendedRuntime")
    include_settings: bool = Field(default=False, alias="includeSettings")
    include_weather: bool = Field(default=False, alias="includeWeather")

    @classmethod
    def registered(cls) -> "Selection":
        """Every sub-object the exporter reads, for all registered thermostats."""
        return cls(
            selection_type="registered",
            include_sensors=True,
            include_runtime=True,
            include_extended_runtime=True,
            include_settings=True,
            include_weather=True,
        )

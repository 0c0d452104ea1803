"""Tests for the thermostat wire models and thermostatList decoding."""

import pytest
from pydantic import ValidationError
from structlog.testing import capture_logs

from ecobee_exporter.decode import RejectedThermostat, decode_thermostats
from ecobee_exporter.models.thermostat import Capability, Selection, Thermostat


# ---------------------------------------------------------------------------
# Thermostat model
# ---------------------------------------------------------------------------


class TestThermostat:
    def test_bundled_response_validates(self, thermostat_response):
        for raw in thermostat_response["thermostatList"]:
            Thermostat.model_validate(raw)

    def test_camel_case_fields_map_to_snake_case(self, thermostats):
        hallway = thermostats[0]
        assert hallway.runtime.actual_temperature == 705
        assert hallway.runtime.desired_cool == 760
        assert hallway.runtime.desired_heat == 680
        assert hallway.extended_runtime.cool1 == [0, 120, 300]
        assert hallway.settings.hvac_mode == "auto"
        assert hallway.weather.forecasts[0].date_time == "2026-10-17 14:00:00"
        assert hallway.remote_sensors[1].in_use is False

    def test_connected_property(self, thermostats):
        assert thermostats[0].connected is True
        assert thermostats[1].connected is False

    def test_unknown_fields_ignored(self, thermostats):
        assert not hasattr(thermostats[0], "model_number")

    def test_minimal_thermostat_gets_defaults(self):
        t = Thermostat.model_validate({"identifier": "x"})
        assert t.connected is False
        assert t.remote_sensors == []
        assert t.weather.forecasts == []
        assert t.extended_runtime.fan == []
        assert t.settings.hvac_mode is None
        assert t.runtime.actual_temperature is None

    def test_identifier_required(self):
        with pytest.raises(ValidationError):
            Thermostat.model_validate({"name": "no id"})

    def test_equipment_samples_must_be_integers(self):
        with pytest.raises(ValidationError):
            Thermostat.model_validate({"identifier": "x", "extendedRuntime": {"fan": ["lots"]}})

    def test_null_equipment_samples_count_as_zero(self):
        t = Thermostat.model_validate({"identifier": "x", "extendedRuntime": {"fan": [0, None, 300], "cool1": None}})
        assert t.extended_runtime.fan == [0, 0, 300]
        assert t.extended_runtime.cool1 == []

    def test_forecast_temperature_optional(self):
        t = Thermostat.model_validate({"identifier": "x", "weather": {"forecasts": [{"dateTime": "now"}]}})
        assert t.weather.forecasts[0].temperature is None

    def test_undecodable_sensor_dropped_alone(self):
        raw = {
            "identifier": "x",
            "remoteSensors": [
                "not a sensor",
                {"id": "rs:2", "inUse": "maybe"},
                {"id": "rs:3", "name": "Den", "inUse": True},
            ],
        }
        with capture_logs() as events:
            t = Thermostat.model_validate(raw)
        assert [s.id for s in t.remote_sensors] == ["rs:3"]
        skipped = [e for e in events if e["event"] == "entry skipped"]
        assert [(e["entry"], e["index"], e["log_level"]) for e in skipped] == [
            ("remote sensor", 0, "error"),
            ("remote sensor", 1, "error"),
        ]
        assert skipped[1]["field"] == "inUse"

    def test_undecodable_capability_dropped_alone(self):
        raw = {
            "identifier": "x",
            "remoteSensors": [
                {
                    "id": "rs:1",
                    "capability": [{"id": "1", "value": "700"}, {"id": "2", "type": "humidity", "value": "40"}],
                }
            ],
        }
        with capture_logs() as events:
            t = Thermostat.model_validate(raw)
        [sensor] = t.remote_sensors
        assert [c.type for c in sensor.capability] == ["humidity"]
        [skipped] = [e for e in events if e["event"] == "entry skipped"]
        assert skipped["entry"] == "capability"
        assert skipped["field"] == "type"


class TestCapability:
    def test_string_values_kept_verbatim(self):
        cap = Capability.model_validate({"id": "1", "type": "humidity", "value": "41"})
        assert cap.value == "41"

    @pytest.mark.parametrize(("raw", "expected"), [(True, "true"), (False, "false"), (41, "41"), (1013.2, "1013.2")])
    def test_non_string_values_become_text(self, raw, expected):
        cap = Capability.model_validate({"type": "x", "value": raw})
        assert cap.value == expected

    def test_null_value_is_empty(self):
        assert Capability.model_validate({"type": "co2PPM", "value": None}).value == ""

    def test_structured_value_becomes_text(self):
        cap = Capability.model_validate({"type": "x", "value": {"ppm": 650}})
        assert cap.value == "{'ppm': 650}"

    def test_type_required(self):
        with pytest.raises(ValidationError):
            Capability.model_validate({"value": "1"})


class TestSelection:
    def test_registered_wire_form(self):
        assert Selection.registered().model_dump(by_alias=True) == {
            "selectionType": "registered",
            "selectionMatch": "",
            "includeSensors": True,
            "includeRuntime": True,
            "includeExtendedRuntime": True,
            "includeSettings": True,
            "includeWeather": True,
        }

    def test_is_frozen(self):
        with pytest.raises(ValidationError):
            Selection.registered().include_weather = False  # type: ignore[misc]

    def test_equality(self):
        assert Selection.registered() == Selection.registered()


# ---------------------------------------------------------------------------
# decode_thermostats
# ---------------------------------------------------------------------------


class TestDecodeThermostats:
    def test_all_good(self, thermostat_response):
        good, bad = decode_thermostats(thermostat_response["thermostatList"])
        assert [t.identifier for t in good] == ["411960412345", "411960467890"]
        assert bad == []

    def test_empty_list(self):
        assert decode_thermostats([]) == ([], [])

    def test_non_object_rejected(self):
        good, bad = decode_thermostats(["oops", {"identifier": "ok"}])
        assert [t.identifier for t in good] == ["ok"]
        assert bad == [RejectedThermostat(index=0, identifier=None, reason="expected JSON object, got str")]

    def test_missing_field_reported(self):
        raw = {"name": "Hallway", "runtime": {"connected": True}}
        good, bad = decode_thermostats([raw])
        assert good == []
        [rejected] = bad
        assert rejected.identifier is None
        assert rejected.reason.startswith("required field missing")
        assert "identifier" in rejected.reason

    def test_invalid_value_reported(self):
        raw = {"identifier": "t-9", "runtime": {"actualTemperature": "warm"}}
        _, [rejected] = decode_thermostats([raw])
        assert rejected.reason.startswith("invalid value for")
        assert "actualTemperature" in rejected.reason

    def test_bad_entry_does_not_hide_siblings(self, thermostat_response):
        items = thermostat_response["thermostatList"]
        items.insert(1, {"name": "no identifier"})
        good, bad = decode_thermostats(items)
        assert len(good) == 2
        assert [b.index for b in bad] == [1]
        assert bad[0].identifier is None

    def test_null_capability_keeps_thermostat(self):
        sensor = {
            "id": "rs:1",
            "capability": [
                {"id": "1", "type": "temperature", "value": "700"},
                {"id": "2", "type": "humidity", "value": "40"},
                {"id": "3", "type": "co2PPM", "value": None},
            ],
        }
        good, bad = decode_thermostats([{"identifier": "t-1", "remoteSensors": [sensor]}])
        assert bad == []
        [t] = good
        assert [(c.type, c.value) for c in t.remote_sensors[0].capability] == [
            ("temperature", "700"),
            ("humidity", "40"),
            ("co2PPM", ""),
        ]

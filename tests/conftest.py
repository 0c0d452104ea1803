"""Shared pytest helpers and fixtures for the ecobee-exporter test suite.

load_fixture(name)      — parse tests/fixtures/<name>.json
make_thermostat(**kw)   — minimal connected Thermostat with overrides
make_sensor(*caps)      — remoteSensors entry carrying (type, value) capabilities
FakeSource              — in-memory data source recording every selection
thermostat_response     — fixture: the bundled two-thermostat API response
thermostats             — fixture: that response decoded into Thermostat models
"""

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from ecobee_exporter.models.thermostat import Selection, Thermostat

FIXTURE_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> dict[str, Any]:
    """Parse ``tests/fixtures/<name>.json``."""
    return json.loads((FIXTURE_DIR / f"{name}.json").read_text(encoding="utf-8"))


_BASE_THERMOSTAT: dict[str, Any] = {
    "identifier": "t-1",
    "name": "Living Room",
    "runtime": {"connected": True, "actualTemperature": 700, "desiredHeat": 650, "desiredCool": 750},
    "settings": {"hvacMode": "heat"},
    "weather": {"forecasts": [{"dateTime": "2026-10-17 12:00:00", "temperature": 500}]},
}


def make_thermostat(**overrides: Any) -> Thermostat:
    """Return a validated Thermostat; top-level wire keys in *overrides* replace the base."""
    raw = copy.deepcopy(_BASE_THERMOSTAT)
    raw.update(overrides)
    return Thermostat.model_validate(raw)


def make_sensor(*capabilities: tuple[str, str], **overrides: Any) -> dict[str, Any]:
    """Return a remoteSensors entry carrying *capabilities* as (type, value) pairs."""
    sensor = {
        "id": "rs:1",
        "name": "Office",
        "type": "ecobee3_remote_sensor",
        "inUse": True,
        "capability": [{"id": str(i), "type": t, "value": v} for i, (t, v) in enumerate(capabilities)],
    }
    sensor.update(overrides)
    return sensor


class FakeSource:
    """Data source returning canned thermostats, or raising *error*."""

    def __init__(self, thermostats: list[Thermostat] | None = None, error: Exception | None = None) -> None:
        self.thermostats = thermostats or []
        self.error = error
        self.selections: list[Selection] = []

    def fetch_thermostats(self, selection: Selection) -> list[Thermostat]:
        self.selections.append(selection)
        if self.error is not None:
            raise self.error
        return list(self.thermostats)


@pytest.fixture()
def thermostat_response() -> dict[str, Any]:
    """The bundled API response; a fresh copy per test so mutation is safe."""
    return load_fixture("thermostat_response")


@pytest.fixture()
def thermostats(thermostat_response) -> list[Thermostat]:
    return [Thermostat.model_validate(t) for t in thermostat_response["thermostatList"]]

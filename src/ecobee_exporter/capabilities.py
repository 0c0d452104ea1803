"""Remote-sensor capability kinds and their value parsers.

Every capability arrives as ``{"type": <tag>, "value": <string>}``.  The tag
selects a :class:`CapabilityKind`; tags the exporter does not know map to
``CapabilityKind.UNRECOGNIZED`` so new sensor hardware never breaks a scrape.

Each known kind has a parser that turns the string into a float or raises
:class:`CapabilityValueError`.  Parsers return ``None`` for the ``"unknown"``
sentinel on the air-quality family of kinds: the sensor has no reading yet,
which is a normal state rather than an error.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Callable

UNKNOWN = "unknown"

# Base-10 integer: optional sign, digits only (no whitespace, no underscores).
_INT_RE = re.compile(r"[+-]?[0-9]+")
# Signed 64-bit range, as the API's integers are.
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class CapabilityValueError(ValueError):
    """A capability value could not be converted to a number."""


class CapabilityKind(enum.Enum):
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    OCCUPANCY = "occupancy"
    VOC_PPM = "vocPPM"
    CO2_PPM = "co2PPM"
    AIR_QUALITY_ACCURACY = "airQualityAccuracy"
    AIR_QUALITY = "airQuality"
    AIR_PRESSURE = "airPressure"
    UNRECOGNIZED = "*"

    @classmethod
    def _missing_(cls, value: object) -> CapabilityKind:
        return cls.UNRECOGNIZED

    @classmethod
    def from_tag(cls, tag: str) -> CapabilityKind:
        """Return the kind for *tag*; unknown tags give ``UNRECOGNIZED``."""
        return cls(tag)


def temp_in_f(raw: int) -> float:
    """Convert an ecobee temperature (tenths of °F) to °F."""
    return raw / 10.0


def temp_in_c(raw: int) -> float:
    """Convert an ecobee temperature (tenths of °F) to °C.

    Evaluated as ``(raw / 10 - 32) * 5 / 9`` in exactly this order so results
    match existing dashboards to the last bit.
    """
    return (raw / 10 - 32) * 5 / 9


def parse_int(value: str) -> int:
    if not _INT_RE.fullmatch(value):
        raise CapabilityValueError(f"invalid integer {value!r}")
    # Longer digit runs are out of range anyway; int() caps very long strings.
    number = int(value) if len(value.lstrip("+-").lstrip("0")) <= 19 else _INT64_MAX + 1
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise CapabilityValueError(f"integer out of range {value!r}")
    return number


def parse_float(value: str) -> float:
    # float() tolerates padding and digit separators; the API never sends them.
    if value != value.strip() or "_" in value or not value:
        raise CapabilityValueError(f"invalid number {value!r}")
    try:
        return float(value)
    except ValueError:
        raise CapabilityValueError(f"invalid number {value!r}") from None


def parse_temperature(value: str) -> float:
    return temp_in_f(parse_int(value))


def parse_occupancy(value: str) -> float:
    if value == "true":
        return 1.0
    if value == "false":
        return 0.0
    raise CapabilityValueError(f"unknown sensor occupancy value {value!r}")


def parse_optional_float(value: str) -> float | None:
    """Like :func:`parse_float` but ``"unknown"`` yields ``None``."""
    if value == UNKNOWN:
        return None
    return parse_float(value)


PARSERS: dict[CapabilityKind, Callable[[str], float | None]] = {
    CapabilityKind.TEMPERATURE: parse_temperature,
    CapabilityKind.HUMIDITY: parse_float,
    CapabilityKind.OCCUPANCY: parse_occupancy,
    CapabilityKind.VOC_PPM: parse_optional_float,
    CapabilityKind.CO2_PPM: parse_optional_float,
    CapabilityKind.AIR_QUALITY_ACCURACY: parse_optional_float,
    CapabilityKind.AIR_QUALITY: parse_optional_float,
    CapabilityKind.AIR_PRESSURE: parse_optional_float,
}

"""Thermostat list decoding with bad-entry capture.

``decode_thermostats(items)`` turns the raw ``thermostatList`` array of an
API response into two lists:

- ``good``: a validated :class:`~ecobee_exporter.models.thermostat.Thermostat`
  for every entry that matches the wire schema.
- ``bad``:  a :class:`RejectedThermostat` for every entry that is not a JSON
  object or fails validation.

One malformed thermostat therefore never hides its siblings.  The caller
decides what to do with ``bad`` entries; the API client logs and drops them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ecobee_exporter.models.thermostat import Thermostat


@dataclass(frozen=True)
class RejectedThermostat:
    """A ``thermostatList`` entry that could not be decoded."""

    index: int
    identifier: str | None
    reason: str


def decode_thermostats(items: list[Any]) -> tuple[list[Thermostat], list[RejectedThermostat]]:
    """Validate each entry of *items* and return ``(good, bad)``.

    Args:
        items: The ``thermostatList`` array, already parsed from JSON.

    Returns:
        A 2-tuple ``(good, bad)``; both lists keep the order of *items*.
    """
    good: list[Thermostat] = []
    bad: list[RejectedThermostat] = []

    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            bad.append(
                RejectedThermostat(
                    index=index,
                    identifier=None,
                    reason=f"expected JSON object, got {type(raw).__name__}",
                )
            )
            continue

        try:
            good.append(Thermostat.model_validate(raw))
        except ValidationError as exc:
            identifier = raw.get("identifier")
            bad.append(
                RejectedThermostat(
                    index=index,
                    identifier=str(identifier) if identifier is not None else None,
                    reason=_first_error(exc),
                )
            )

    return good, bad


def _first_error(exc: ValidationError) -> str:
    """Summarise the first Pydantic error as ``"<field path>: <message>"``.

    Only the first error is reported to keep log lines short.
    """
    first = exc.errors(include_url=False)[0]
    field = " → ".join(str(loc) for loc in first.get("loc", ()))
    msg = first.get("msg", str(exc))
    if first.get("type") == "missing":
        return f"required field missing: {field!r}"
    return f"invalid value for {field!r}: {msg}"

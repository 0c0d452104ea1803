"""Metric sinks — where the scrape translator writes its observations.

A sink exposes two operations:

    declare(descriptor)                    register a descriptor before use
    emit(descriptor, value, label_values)  record one gauge observation

:class:`GaugeFamilySink` backs the Prometheus exporter: one
``GaugeMetricFamily`` per declared descriptor.  :class:`ObservationSink`
keeps plain :class:`Observation` tuples for callers that want the raw
samples without any exposition format (tests, ``scrape --format table``).

Emitting to an undeclared descriptor, or with the wrong number of label
values, is a programming error and raises immediately.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Protocol

from prometheus_client.core import GaugeMetricFamily

from ecobee_exporter.catalog import MetricDescriptor


class Sink(Protocol):
    def declare(self, descriptor: MetricDescriptor) -> None: ...

    def emit(self, descriptor: MetricDescriptor, value: float, label_values: Sequence[str]) -> None: ...


@dataclass(frozen=True)
class Observation:
    """One emitted gauge sample."""

    name: str
    labels: tuple[tuple[str, str], ...]
    value: float

    @property
    def label_map(self) -> dict[str, str]:
        return dict(self.labels)


def _check_labels(descriptor: MetricDescriptor, label_values: Sequence[str]) -> None:
    if len(label_values) != len(descriptor.label_names):
        raise ValueError(
            f"{descriptor.name}: expected {len(descriptor.label_names)} label values "
            f"{descriptor.label_names}, got {len(label_values)}"
        )


class ObservationSink:
    """Collects observations in emission order."""

    def __init__(self) -> None:
        self._declared: dict[str, MetricDescriptor] = {}
        self.observations: list[Observation] = []

    def declare(self, descriptor: MetricDescriptor) -> None:
        self._declared[descriptor.name] = descriptor

    def emit(self, descriptor: MetricDescriptor, value: float, label_values: Sequence[str]) -> None:
        if descriptor.name not in self._declared:
            raise KeyError(f"metric {descriptor.name!r} was not declared")
        _check_labels(descriptor, label_values)
        self.observations.append(
            Observation(
                name=descriptor.name,
                labels=tuple(zip(descriptor.label_names, label_values)),
                value=float(value),
            )
        )

    @property
    def declared(self) -> list[MetricDescriptor]:
        return list(self._declared.values())

    def named(self, name: str) -> list[Observation]:
        """Return every observation recorded for metric *name*."""
        return [o for o in self.observations if o.name == name]


class GaugeFamilySink:
    """Builds one ``GaugeMetricFamily`` per declared descriptor."""

    def __init__(self) -> None:
        self._families: dict[str, GaugeMetricFamily] = {}

    def declare(self, descriptor: MetricDescriptor) -> None:
        self._families[descriptor.name] = GaugeMetricFamily(
            descriptor.name,
            descriptor.help,
            labels=list(descriptor.label_names),
        )

    def emit(self, descriptor: MetricDescriptor, value: float, label_values: Sequence[str]) -> None:
        try:
            family = self._families[descriptor.name]
        except KeyError:
            raise KeyError(f"metric {descriptor.name!r} was not declared") from None
        _check_labels(descriptor, label_values)
        family.add_metric(list(label_values), float(value))

    def families(self) -> Iterator[GaugeMetricFamily]:
        """Yield families in declaration order, including ones with no samples."""
        yield from self._families.values()

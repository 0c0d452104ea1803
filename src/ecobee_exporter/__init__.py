"""ecobee-exporter — Prometheus metrics for ecobee thermostats.

Polls the ecobee cloud API once per Prometheus scrape and translates every
thermostat's runtime, equipment, weather and remote-sensor readings into
labeled gauges.  Nothing is cached between scrapes.
"""

__version__ = "0.1.0"

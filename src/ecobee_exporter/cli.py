"""CLI root — entry point for all ecobee-exporter subcommands.

Entry points:
  ecobee-exporter            (installed console script)
  python -m ecobee_exporter

Command surface:
  ecobee-exporter serve          serve /metrics for Prometheus
  ecobee-exporter scrape         run one scrape and print the result
  ecobee-exporter catalog list   list every metric the exporter can emit
  ecobee-exporter config show    print resolved configuration
"""

from enum import Enum

import typer

from ecobee_exporter import __version__
from ecobee_exporter.config import Settings
from ecobee_exporter.logging import get_logger

app = typer.Typer(
    name="ecobee-exporter",
    help="Prometheus exporter for ecobee thermostats.",
    no_args_is_help=True,
)

_log = get_logger(__name__)

_SECRET_KEYS = frozenset({"app_key", "refresh_token"})


class OutputFormat(str, Enum):
    prometheus = "prometheus"
    table = "table"


# ---------------------------------------------------------------------------
# Global callback — runs before every subcommand
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ecobee-exporter {__version__}")
        raise typer.Exit()


@app.callback()
def _main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Print version and exit.",
    ),
) -> None:
    """Prometheus exporter for ecobee thermostats."""
    # Eager options (--version) raise typer.Exit() before this body runs.
    from ecobee_exporter.logging import configure_logging

    configure_logging()


def _build_translator(settings: Settings):
    from ecobee_exporter.catalog import build_catalog
    from ecobee_exporter.client import EcobeeClient
    from ecobee_exporter.collector import ScrapeTranslator

    client = EcobeeClient.from_settings(settings)
    return ScrapeTranslator(client, build_catalog(settings.exporter.metric_prefix))


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@app.command("serve")
def serve(
    listen: str = typer.Option(
        "",
        "--listen",
        "-l",
        help="Address to bind.  Empty = exporter.listen_address from config.",
    ),
    port: int = typer.Option(
        0,
        "--port",
        "-p",
        help="Port to bind.  0 = exporter.port from config.",
    ),
) -> None:
    """Serve metrics over HTTP for Prometheus to scrape.

    Every request to the telemetry path fetches fresh thermostat data from
    the ecobee API; nothing is cached between scrapes.
    """
    from ecobee_exporter.config import get_settings
    from ecobee_exporter.exporter import EcobeeCollector, build_registry
    from ecobee_exporter.server import make_app, serve as run_server

    settings = get_settings()
    if not settings.ecobee.app_key:
        typer.echo("Error: ecobee.app_key is not configured", err=True)
        raise typer.Exit(2)

    collector = EcobeeCollector(_build_translator(settings))
    registry = build_registry(collector)
    wsgi_app = make_app(registry, settings.exporter.telemetry_path)

    run_server(
        wsgi_app,
        listen or settings.exporter.listen_address,
        port or settings.exporter.port,
    )


# ---------------------------------------------------------------------------
# scrape
# ---------------------------------------------------------------------------


@app.command("scrape")
def scrape(
    output: OutputFormat = typer.Option(
        OutputFormat.prometheus,
        "--format",
        "-f",
        help="prometheus = exposition text; table = one observation per line.",
    ),
) -> None:
    """Run a single scrape and print the result to stdout.

    Exits 1 if the ecobee API could not be reached; ``fetch_time`` is still
    printed in that case.
    """
    from prometheus_client import generate_latest

    from ecobee_exporter.config import get_settings
    from ecobee_exporter.exporter import EcobeeCollector, build_registry
    from ecobee_exporter.sink import ObservationSink

    settings = get_settings()
    translator = _build_translator(settings)

    if output is OutputFormat.table:
        sink = ObservationSink()
        translator.declare(sink)
        stats = translator.collect(sink)
        for obs in sink.observations:
            labels = ",".join(f'{k}="{v}"' for k, v in obs.labels)
            typer.echo(f"{obs.name}{{{labels}}} {obs.value:g}")
    else:
        collector = EcobeeCollector(translator)
        registry = build_registry(collector, process_metrics=False)
        typer.echo(generate_latest(registry).decode(), nl=False)
        stats = collector.last_stats

    if stats is None or not stats.ok:
        raise typer.Exit(1)
    _log.info(
        "scrape finished",
        thermostats=stats.thermostats,
        sensors=stats.sensors,
        rejected=stats.rejected,
    )


# ---------------------------------------------------------------------------
# catalog subcommands
# ---------------------------------------------------------------------------

_catalog_app = typer.Typer(help="Inspect the metric catalog.")
app.add_typer(_catalog_app, name="catalog")


@_catalog_app.command("list")
def catalog_list(
    prefix: str = typer.Option(
        "",
        "--prefix",
        help="Metric name prefix.  Empty = exporter.metric_prefix from config.",
    ),
) -> None:
    """List every metric the exporter declares, with its labels."""
    from ecobee_exporter.catalog import build_catalog
    from ecobee_exporter.config import get_settings

    catalog = build_catalog(prefix or get_settings().exporter.metric_prefix)
    descriptors = list(catalog.describe())

    name_width = max(len(d.name) for d in descriptors)
    typer.echo(f"  {'name'.ljust(name_width)}  labels")
    for d in descriptors:
        typer.echo(f"  {d.name.ljust(name_width)}  {', '.join(d.label_names) or '-'}")
    typer.echo(f"\n  {len(descriptors)} metrics")


# ---------------------------------------------------------------------------
# config subcommands
# ---------------------------------------------------------------------------

_config_app = typer.Typer(help="Inspect resolved configuration.")
app.add_typer(_config_app, name="config")


@_config_app.command("show")
def config_show() -> None:
    """Print the fully-resolved configuration and exit.

    Shows which config file was loaded and the final value of every setting
    after environment-variable overrides are applied.  Credentials are
    masked.
    """
    from ecobee_exporter.config import _config_file, get_settings

    settings = get_settings()

    typer.echo(f"\n  config : {_config_file()}\n")

    for section_name, section in settings.model_dump().items():
        typer.echo(f"  [{section_name}]")
        width = max(len(k) for k in section)
        for key, val in section.items():
            if key in _SECRET_KEYS and val:
                val = "********"
            typer.echo(f"  {key.ljust(width)} = {val}")
        typer.echo()

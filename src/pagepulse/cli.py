# src/pagepulse/cli.py
"""pagepulse Command Line Interface.

Entry point for the pagepulse CLI tool: settings validation, connection
probing and replay of recorded events against a collection endpoint.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from pagepulse import __version__
from pagepulse.contracts.enums import FlushTrigger
from pagepulse.contracts.events import ENVELOPE_KEYS
from pagepulse.core.config import CollectorSettings, load_settings

__all__ = ["app"]

app = typer.Typer(
    name="pagepulse",
    help="pagepulse: engagement and performance telemetry collector.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"pagepulse version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


def _load_settings_or_exit(settings_path: Path) -> CollectorSettings:
    try:
        return load_settings(settings_path)
    except FileNotFoundError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.secho("Configuration errors:", fg=typer.colors.RED, err=True)
        for error in e.errors():
            loc = ".".join(str(part) for part in error["loc"])
            typer.secho(f"  - {loc}: {error['msg']}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs.",
    ),
) -> None:
    """pagepulse: engagement and performance telemetry collector."""
    from pagepulse.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)


@app.command()
def validate(
    settings: Path = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Validate a settings file and print the resolved configuration."""
    config = _load_settings_or_exit(settings)
    typer.echo(json.dumps(config.model_dump(), indent=2))
    if config.domain_id is None:
        typer.secho("Warning: domain_id is not set; the collector will not auto-start.", fg=typer.colors.YELLOW, err=True)


@app.command()
def probe(
    endpoint: str = typer.Option(
        ...,
        "--endpoint",
        "-e",
        help="Collection endpoint base URL.",
    ),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout in seconds."),
) -> None:
    """Measure connection speed against {endpoint}/beacon."""
    from pagepulse.telemetry.probe import ConnectionProbe

    try:
        config = CollectorSettings(endpoint=endpoint, request_timeout=timeout)
    except ValidationError as e:
        typer.secho(f"Error: {e.errors()[0]['msg']}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None

    speed = ConnectionProbe(config.beacon_url, timeout=config.request_timeout).measure()
    if speed is None:
        typer.secho(f"Probe failed: {config.beacon_url}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    typer.echo(f"{speed:.3f} Mbps")


def _read_records(path: Path) -> list[tuple[str, dict[str, Any]]]:
    """Parse a JSONL file of wire-format events into (event_type, payload) pairs.

    Envelope fields other than eventType are dropped: identity, timestamp
    and page context come from the replaying collector.

    Raises:
        ValueError: On a malformed line (message includes the line number).
    """
    records: list[tuple[str, dict[str, Any]]] = []
    with path.open(encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"line {line_no}: invalid JSON: {e}") from e
            if not isinstance(obj, dict):
                raise ValueError(f"line {line_no}: expected a JSON object, got {type(obj).__name__}")
            event_type = obj.get("eventType")
            if not isinstance(event_type, str) or not event_type:
                raise ValueError(f"line {line_no}: missing eventType")
            records.append((event_type, {k: v for k, v in obj.items() if k not in ENVELOPE_KEYS}))
    return records


@app.command()
def replay(
    events_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSONL file of events."),
    settings: Path = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    url: str = typer.Option("", "--url", help="Page URL recorded on replayed events."),
    visitor_file: Path | None = typer.Option(
        None,
        "--visitor-file",
        help="JSON file persisting the visitor id between replays.",
    ),
) -> None:
    """Replay recorded events through a collector and deliver them.

    Events are delivered in confirmable batches until the queue is empty
    or a batch fails; anything left is sent by the exit beacon.
    """
    from pagepulse.collector import Collector
    from pagepulse.core.identity import InMemoryVisitorStore, JsonFileVisitorStore
    from pagepulse.page import PageContext
    from pagepulse.telemetry.transports import HttpBeacon

    config = _load_settings_or_exit(settings)
    if config.domain_id is None:
        typer.secho("Error: settings must set domain_id to replay events.", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    try:
        records = _read_records(events_file)
    except ValueError as e:
        typer.secho(f"Error: {events_file}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None

    beacon = HttpBeacon(config.collect_url, timeout=config.request_timeout)
    collector = Collector(
        config,
        visitor_store=JsonFileVisitorStore(visitor_file) if visitor_file is not None else InMemoryVisitorStore(),
        page_context=PageContext(url=url, user_agent=f"pagepulse-cli/{__version__}"),
        beacon=beacon,
        autostart=False,
    )
    # A replay is not a page load: no page view
    collector.start(page_view=False)
    for event_type, payload in records:
        collector.track(event_type, payload)

    while True:
        result = collector.dispatcher.flush(FlushTrigger.MANUAL)
        if result.attempted == 0 or not result.delivered:
            break

    forced = collector.dispatcher.close(timeout=config.request_timeout)
    beacon.wait(timeout=config.request_timeout)

    metrics = collector.dispatcher.health_metrics
    typer.echo(json.dumps({"replayed": len(records), "forced": forced, **metrics}, indent=2))
    if metrics["batches_failed"]:
        raise typer.Exit(2)

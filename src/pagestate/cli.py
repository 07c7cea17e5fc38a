# src/pagestate/cli.py
"""
pagestate Command Line Interface (CLI).

This module implements the developer-facing terminal interface using `typer`
and `rich`. It is a thin shell around the library: routing decisions come
from :func:`classify`, snapshots from :class:`StateAssembler`.

Features
--------
- **Classify**: show how a URL path is understood, without any network I/O.
- **Hydrate**: build the state snapshot for a URL against a live backend and
  print it as JSON, optionally saving it to a file.
- **Timings**: with ``--timings`` (or ``TIME_LOG=true``) every timed span of
  the run is listed in a table after the snapshot.

Usage
-----
    $ pagestate classify /hot/funny-cats
    $ pagestate hydrate /@alice --full --timings
    $ pagestate hydrate /trending --backend-url https://api.example.com -o state.json
"""

from __future__ import annotations

import asyncio
import json
import uuid
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from pagestate.core.settings import Settings, load_settings
from pagestate.core.timing.registry import RequestTimer, TimingSink
from pagestate.core.timing.trace import TimingRecord
from pagestate.pipelines.hydrate import HydrationError, StateAssembler
from pagestate.routing.classifier import classify

# Ensure env vars (like BACKEND_URL, TIME_LOG) are loaded before any logic runs
load_dotenv()

app = typer.Typer(
    help="pagestate: hydrate page state snapshots from a content backend.",
    rich_markup_mode="markdown",
)
console = Console()


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def _build_assembler(settings: Settings, sink: TimingSink) -> StateAssembler:
    """Create the assembler for one CLI run.

    Split into a helper so tests can monkeypatch it and inject a fake backend.
    """
    return StateAssembler.from_settings(settings, sink=sink)


def _render_timings(records: list[TimingRecord], phases: dict[str, float]) -> None:
    """Print the recorded spans and request phases as a table."""
    table = Table(title="Timings", show_lines=False)
    table.add_column("Span", style="cyan")
    table.add_column("ms", justify="right", style="magenta")

    for record in records:
        table.add_row(record.label, f"{record.elapsed_ms:.1f}")
    for name, elapsed in phases.items():
        table.add_row(f"[bold]{name}[/bold]", f"{elapsed:.1f}")

    console.print(table)


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.command("classify")  # type: ignore[misc]
def classify_path(
    path: Annotated[str, typer.Argument(help="URL path, e.g. '/hot/funny-cats'.")],
) -> None:
    """Show the page intent a URL path classifies to."""
    intent = classify(path)
    console.print_json(json.dumps(intent.model_dump()))


@app.command()  # type: ignore[misc]
def hydrate(
    url: Annotated[str, typer.Argument(help="Page URL path to hydrate, e.g. '/@alice'.")],
    observer: Annotated[
        str | None,
        typer.Option("--observer", help="Viewing account passed to backend calls."),
    ] = None,
    full: Annotated[
        bool,
        typer.Option(
            "--full/--lite",
            help="Full render mode also fetches the profile and trending topics.",
        ),
    ] = False,
    request_id: Annotated[
        str | None,
        typer.Option("--request-id", help="Request identifier scoping timer labels."),
    ] = None,
    backend_url: Annotated[
        str | None,
        typer.Option("--backend-url", help="Override BACKEND_URL for this run."),
    ] = None,
    timings: Annotated[
        bool,
        typer.Option("--timings", "-t", help="Enable timing and print a span table."),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Also write the snapshot JSON to this file."),
    ] = None,
) -> None:
    """Hydrate the state snapshot for a URL and print it as JSON."""
    overrides: dict[str, object] = {}
    if backend_url:
        overrides["backend_url"] = backend_url
    if timings:
        overrides["time_log"] = True
    settings = load_settings().model_copy(update=overrides)

    records: list[TimingRecord] = []
    assembler = _build_assembler(settings, records.append)
    request_timer = RequestTimer()
    rid = request_id or uuid.uuid4().hex

    try:
        snapshot = asyncio.run(
            assembler.hydrate(
                url,
                observer=observer,
                full_render=full,
                request_id=rid,
                request_timer=request_timer,
            )
        )
    except HydrationError as e:
        console.print(f"[bold red]Hydration failed:[/bold red] {e.cause!r}")
        raise typer.Exit(code=1) from e

    payload = json.dumps(snapshot.to_payload(), ensure_ascii=False, default=str)
    console.print_json(payload)

    if output is not None:
        output.write_text(payload + "\n", encoding="utf-8")
        console.print(f"[dim]Snapshot saved to: {output}[/dim]")

    if assembler.timing.enabled:
        _render_timings(records, request_timer.durations())


if __name__ == "__main__":
    app()

#!/usr/bin/env python3
"""Command-line interface for pytracker-modbus using Typer."""

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .addressing import compute_start_address, compute_unit_id, parse_category
from .client import SiteModbusClient
from .codec import decode_value, normalize_codec, pad_hex
from .config import load_settings
from .errors import (
    FieldSpecError,
    InvalidIdentifierError,
    ModbusIOError,
    UnknownDeviceCategoryError,
)
from .fieldspec import FieldSpecSource
from .identifiers import coerce_identifier, read_identifier_column
from .mode import MODE_MAP, ModeToggleClient
from .poller import poll as poll_rows
from .report import csv_columns, row_cells
from .runner import run_all_reports
from .types import AddressingMode, DecodeDiagnostic

app = typer.Typer(
    name="pytracker",
    help="Poll tracker site controllers over Modbus TCP and generate register reports.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

HostOption = Annotated[
    Optional[str],
    typer.Option("--host", "-h", help="Site controller hostname or IP address", envvar="PYTRACKER_HOST"),
]
PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="Modbus TCP port", envvar="PYTRACKER_PORT"),
]
TimeoutOption = Annotated[
    float,
    typer.Option("--timeout", "-t", help="Timeout in seconds", envvar="PYTRACKER_TIMEOUT"),
]
CategoryOption = Annotated[
    str,
    typer.Option("--category", "-c", help="Device category: row, weather, repeater, network, assets"),
]
PositionOption = Annotated[
    bool,
    typer.Option("--position", help="Use 0-based position addressing instead of TTID addressing"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def addressing_mode(position: bool) -> AddressingMode:
    return AddressingMode.POSITION if position else AddressingMode.TTID


def format_decoded(value: Any) -> str:
    """Format a decoded value or diagnostic for display."""
    if value is None:
        return ""
    if isinstance(value, DecodeDiagnostic):
        return value.message
    return str(value)


def _fail(message: str, code: int) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def decode(
    hex_digits: Annotated[str, typer.Argument(help="Combined register hex, e.g. 4048F5C3")],
    codec: Annotated[str, typer.Option("--codec", help="Codec name or alias (float32, u16, asciiz, ...)")] = "hex",
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Decode a combined register hex string offline.

    The string is left-padded to the codec width first, as the poller does.
    """
    setup_logging(verbose)

    digits = hex_digits.strip()
    if digits.lower().startswith("0x"):
        digits = digits[2:]
    canonical = normalize_codec(codec)
    padded = pad_hex(digits, canonical)
    try:
        value = decode_value(padded, canonical)
    except ValueError as e:
        _fail(f"Invalid hex {hex_digits!r}: {e}", 2)
    if value is None:
        _fail(f'Unknown codec "{codec}"', 2)

    if json_output:
        out = {
            "codec": canonical.value if hasattr(canonical, "value") else canonical,
            "hex": padded.upper(),
            "value": format_decoded(value) if isinstance(value, DecodeDiagnostic) else value,
            "diagnostic": isinstance(value, DecodeDiagnostic),
        }
        typer.echo(json.dumps(out))
    else:
        typer.echo(format_decoded(value))


@app.command()
def explain(
    identifier: Annotated[int, typer.Option("--id", help="TTID (1-based) or position (0-based)")],
    category: CategoryOption = "row",
    base: Annotated[int, typer.Option("--base", help="Field base register within the device block")] = 0,
    position: PositionOption = False,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show the unit id and absolute start register for an identifier and base register.

    Does not require a connection.
    """
    setup_logging(verbose)
    mode = addressing_mode(position)

    try:
        cat = parse_category(category)
        unit_id = compute_unit_id(cat, identifier, mode)
        address = compute_start_address(cat, identifier, unit_id, base, mode)
    except (InvalidIdentifierError, UnknownDeviceCategoryError) as e:
        _fail(str(e), 2)

    info = {
        "category": cat.value,
        "mode": mode.value,
        "identifier": identifier,
        "unit_id": unit_id,
        "base_register": base,
        "start_address": address,
    }
    if json_output:
        typer.echo(json.dumps(info, indent=2))
    else:
        typer.echo(f"Category:        {info['category']} ({info['mode']})")
        typer.echo(f"Identifier:      {info['identifier']}")
        typer.echo(f"Unit ID:         {info['unit_id']}")
        typer.echo(f"Start address:   {info['start_address']}")


@app.command()
def poll(
    ids: Annotated[Optional[list[str]], typer.Argument(help="TTIDs or positions to poll")] = None,
    host: HostOption = None,
    port: PortOption = 502,
    timeout: TimeoutOption = 3.0,
    category: CategoryOption = "row",
    position: PositionOption = False,
    ids_csv: Annotated[
        Optional[Path],
        typer.Option("--ids-csv", help="CSV with a TTID (or Position, with --position) column"),
    ] = None,
    spec_dir: Annotated[
        Path,
        typer.Option("--spec-dir", envvar="PYTRACKER_SPEC_DIR", help="Directory holding unsorted_assets.json / unsorted_nc.json"),
    ] = Path("json"),
    format: Annotated[str, typer.Option("--format", "-f", help="Output format: text, json, csv")] = "text",
    verbose: VerboseOption = False,
) -> None:
    """
    Poll every field of one device category for the given identifiers.

    Read errors and invalid entries are reported as rows; the run continues past them.
    """
    setup_logging(verbose)

    if format not in ("text", "json", "csv"):
        _fail(f"Invalid format '{format}'. Must be text, json, or csv.", 2)
    if not host:
        _fail("--host is required for this command", 2)

    mode = addressing_mode(position)
    identifiers: list[str] = list(ids or [])
    if ids_csv is not None:
        if not ids_csv.is_file():
            _fail(f"Identifier file not found: {ids_csv}", 2)
        identifiers.extend(read_identifier_column(ids_csv, "Position" if position else "TTID"))
    if not identifiers:
        _fail("At least one identifier is required for poll", 2)

    try:
        cat = parse_category(category)
        specs = FieldSpecSource(spec_dir).for_category(cat)
        with SiteModbusClient(host, port=port, timeout=timeout) as client:
            rows = poll_rows(cat, identifiers, specs, client.read_registers, site=host, mode=mode)
    except UnknownDeviceCategoryError as e:
        _fail(str(e), 2)
    except FieldSpecError as e:
        _fail(f"Field spec: {e}", 2)
    except ModbusIOError as e:
        _fail(f"Connection/Modbus error: {e}", 3)
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(4)

    if format == "json":
        typer.echo(json.dumps([r.as_dict() for r in rows], indent=2))
    elif format == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(csv_columns(mode))
        for row in rows:
            writer.writerow(row_cells(row))
        typer.echo(buf.getvalue().rstrip("\r\n"))
    else:
        for row in rows:
            value = row.error if row.is_error else format_decoded(row.decoded_value)
            typer.echo(
                f"{row.identifier} {row.field_id or '-'} unit={row.unit_id} addr={row.starting_address} "
                f"hex={row.combined_hex or ''} value={value}"
            )


@app.command(name="set-mode")
def set_mode(
    mode: Annotated[str, typer.Argument(help=f"Mode: {', '.join(MODE_MAP)}")],
    url: Annotated[Optional[str], typer.Option("--url", envvar="GRAPHQL_URL", help="GraphQL endpoint URL")] = None,
    access_token: Annotated[str, typer.Option("--access-token", envvar="ACCESS_TOKEN")] = "",
    xsrf_token: Annotated[str, typer.Option("--xsrf", envvar="XSRF_TOKEN")] = "",
    xsrf_cookie: Annotated[str, typer.Option("--xsrf-cookie", envvar="_XSRF_COOKIE")] = "",
    cookie: Annotated[str, typer.Option("--cookie", envvar="COOKIE")] = "",
    timeout: TimeoutOption = 8.0,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Set the remote Modbus service mode (TTID or legacy addressing).

    Exits 0 when applied or skipped by the server, 2 for an invalid mode.
    """
    setup_logging(verbose)

    if mode.lower() not in MODE_MAP:
        _fail(f"Invalid mode {mode!r}. Must be one of: {', '.join(MODE_MAP)}", 2)
    if not url:
        _fail("--url (or GRAPHQL_URL) is required", 2)

    toggle = ModeToggleClient(
        url,
        access_token=access_token,
        xsrf_token=xsrf_token,
        xsrf_cookie=xsrf_cookie,
        cookie=cookie,
        timeout=timeout,
    )
    outcome = toggle.set_mode(mode)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "ok": outcome.ok,
                    "skipped": outcome.skipped,
                    "reason": outcome.reason,
                    "applied_flags": outcome.applied_flags,
                    "selection": outcome.selection,
                    "response": outcome.response,
                },
                indent=2,
            )
        )
    elif outcome.ok:
        typer.echo(f"OK: Mode {mode} applied with {outcome.applied_flags}")
    else:
        typer.echo(f"Skipped: {outcome.reason}")

    if not outcome.ok and not outcome.skipped:
        raise typer.Exit(2)


@app.command()
def report(
    env_file: Annotated[
        Optional[Path],
        typer.Option("--env-file", help="Environment file to load (default: ./.env)"),
    ] = None,
    no_toggle: Annotated[bool, typer.Option("--no-toggle", help="Do not change the remote mode")] = False,
    verbose: VerboseOption = False,
) -> None:
    """
    Generate all reports for the configured site (TTID and legacy position runs).

    Settings come from the environment and .env: SITE, TTID_CSV_PATH, POSITION_CSV_PATH,
    SPEC_DIR, OUTPUT_DIR, GRAPHQL_URL, ACCESS_TOKEN, XSRF_TOKEN, _XSRF_COOKIE, TIMEOUT_MS.
    """
    settings = load_settings(env_file)
    setup_logging(verbose or settings.verbose)
    settings.log_summary()

    toggle = None
    if not no_toggle:
        toggle = ModeToggleClient(
            settings.mode_url,
            access_token=settings.access_token,
            xsrf_token=settings.xsrf_token,
            xsrf_cookie=settings.xsrf_cookie,
            cookie=settings.cookie,
            timeout=settings.toggle_timeout,
        )

    try:
        summary = run_all_reports(settings, toggle=toggle)
    except OSError as e:
        _fail(f"Output directory: {e}", 4)

    for run in summary.runs:
        typer.echo(f"{run.name}: {len(run.reports)} report(s), index {run.index_path}")
        for err in run.errors:
            typer.echo(f"  Error: {err}", err=True)
    for err in summary.errors:
        typer.echo(f"Error: {err}", err=True)
    typer.echo(f"Master index: {summary.master_index}")

    if not summary.runs:
        raise typer.Exit(2)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"pytracker-modbus {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """pytracker - Modbus TCP register reports for tracker sites."""
    pass


if __name__ == "__main__":
    app()

"""CSV and HTML reports for poll results, with per-run and master index pages."""

import csv
import html
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Sequence

from .types import AddressingMode, DeviceCategory, ResultRow

logger = logging.getLogger(__name__)

CATEGORY_TITLES: dict[DeviceCategory, str] = {
    DeviceCategory.ROW: "Row Boxes",
    DeviceCategory.WEATHER: "Weather Station",
    DeviceCategory.REPEATER: "Repeater",
    DeviceCategory.NETWORK: "Network Controller",
    DeviceCategory.ASSETS: "Assets",
}

RUN_DIRS: dict[AddressingMode, str] = {
    AddressingMode.TTID: "ttid_sorted",
    AddressingMode.POSITION: "legacy_unsorted",
}
LEGACY_SORTED_DIR = "legacy_sorted"

DEVICE_TYPE_FIELD = "device type"

_STYLE = """
    body { background: #f1f5f9; font-family: system-ui, sans-serif; margin: 0; }
    .container { max-width: 1100px; margin: 2em auto; background: #fff; border-radius: 12px; padding: 2em; }
    h1 { color: #22223b; margin-top: 0; }
    .nav-links { display: flex; gap: 1em; flex-wrap: wrap; margin-bottom: 1.5em; }
    .nav-link { background: #e7fbe9; color: #166534; padding: 0.4em 0.9em; border-radius: 6px; text-decoration: none; }
    .nav-link.active { background: #16a34a; color: #fff; }
    .section-header { background: #bbf7d0; color: #166534; font-weight: 700; border-radius: 6px;
                      padding: 0.4em 1em; display: inline-block; margin: 1.5em 0 0.5em; }
    table { border-collapse: collapse; width: 100%; table-layout: fixed; }
    th { background: #e7fbe9; color: #166534; text-align: left; }
    th, td { padding: 0.5em; border-bottom: 1px solid #e2e8f0; word-break: break-word; }
    td.hex { font-family: monospace; word-break: break-all; }
    tr.error td { background: #ffeaea; color: #b00; }
    .card { border: 2px solid #e7fbe9; border-radius: 10px; padding: 1em 1.5em; margin-bottom: 1em; }
    .stats { color: #64748b; }
    .home { float: right; }
"""


@dataclass
class CategoryReport:
    """Files written for one category of one run."""

    category: DeviceCategory
    title: str
    csv_path: Path
    html_path: Path
    identifiers: int
    rows: int
    errors: int


@dataclass
class RunReport:
    """One report run (TTID or position addressing) and the category reports it produced."""

    name: str
    mode: AddressingMode
    reports: list[CategoryReport] = field(default_factory=list)
    index_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    directory: str = ""

    @property
    def run_dir(self) -> str:
        """Directory name under the output dir; defaults to the one for the addressing mode."""
        return self.directory or RUN_DIRS[self.mode]


def identifier_header(mode: AddressingMode) -> str:
    return "TTID" if mode == AddressingMode.TTID else "Position"


def report_stem(site: str, category: DeviceCategory, mode: AddressingMode) -> str:
    if mode == AddressingMode.POSITION:
        return f"{site}_{category.value}_multi_position_modbus_data"
    return f"{site}_{category.value}_modbus_data"


def csv_columns(mode: AddressingMode) -> list[str]:
    return [identifier_header(mode), "ID", "Site", "UnitID", "StartingAddress", "Size", "CombinedHex", "DecodedValue"]


def _cell(value: object) -> str:
    return "" if value is None else str(value)


def row_cells(row: ResultRow) -> list[str]:
    """Report cells for one row, in csv_columns order."""
    hex_cell = row.hex_cell
    if not row.is_error and hex_cell:
        # Leading quote keeps spreadsheets from reading hex as a number
        hex_cell = "'" + hex_cell
    return [
        _cell(row.identifier),
        row.field_id,
        row.site,
        _cell(row.unit_id),
        _cell(row.starting_address),
        _cell(row.register_count),
        hex_cell,
        _cell(row.decoded_value),
    ]


def write_csv(rows: Iterable[ResultRow], path: Path, mode: AddressingMode) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(csv_columns(mode))
        for row in rows:
            writer.writerow(row_cells(row))


def group_rows(rows: Iterable[ResultRow]) -> list[tuple[str, list[ResultRow]]]:
    """Group rows by identifier, keeping first-seen order."""
    groups: dict[str, list[ResultRow]] = {}
    for row in rows:
        groups.setdefault(_cell(row.identifier), []).append(row)
    return list(groups.items())


def section_title(identifier: str, rows: Sequence[ResultRow], mode: AddressingMode) -> str:
    title = f"{identifier_header(mode)}: {identifier}"
    for row in rows:
        if row.field_id.strip().lower() == DEVICE_TYPE_FIELD and not row.is_error and row.decoded_value:
            title += f" | DeviceType: {row.decoded_value}"
            break
    return title


def _page(title: str, body: str, home_href: str | None) -> str:
    home = f'<a class="home" href="{html.escape(home_href)}" title="Home">Home</a>' if home_href else ""
    return (
        "<!DOCTYPE html>\n<html lang=\"en\">\n<head>\n<meta charset=\"UTF-8\">\n"
        f"<title>{html.escape(title)}</title>\n<style>{_STYLE}</style>\n</head>\n<body>\n"
        f"<div class=\"container\">{home}\n<h1>{html.escape(title)}</h1>\n{body}\n</div>\n</body>\n</html>\n"
    )


def render_category_html(
    rows: Sequence[ResultRow],
    site: str,
    category: DeviceCategory,
    mode: AddressingMode,
    run_categories: Sequence[DeviceCategory],
) -> str:
    """HTML page for one category: nav to sibling categories, one table per identifier."""
    suffix = " Position Report" if mode == AddressingMode.POSITION else " Report"
    title = f"Modbus {CATEGORY_TITLES[category]}{suffix}"

    nav = ['<div class="nav-links">']
    for cat in run_categories:
        active = " active" if cat == category else ""
        href = html.escape(report_stem(site, cat, mode) + ".html")
        nav.append(f'<a class="nav-link{active}" href="{href}">{html.escape(CATEGORY_TITLES[cat])}</a>')
    nav.append("</div>")

    header = "".join(f"<th>{html.escape(c)}</th>" for c in csv_columns(mode))
    sections = []
    for identifier, group in group_rows(rows):
        lines = [
            '<div class="section">',
            f'<div class="section-header">{html.escape(section_title(identifier, group, mode))}</div>',
            f"<table><thead><tr>{header}</tr></thead><tbody>",
        ]
        for row in group:
            cells = row_cells(row)
            cells[6] = cells[6].lstrip("'")
            tds = "".join(
                f'<td class="hex">{html.escape(c)}</td>' if i == 6 else f"<td>{html.escape(c)}</td>"
                for i, c in enumerate(cells)
            )
            cls = ' class="error"' if row.is_error else ""
            lines.append(f"<tr{cls}>{tds}</tr>")
        lines.append("</tbody></table></div>")
        sections.append("\n".join(lines))

    return _page(title, "\n".join(nav) + "\n" + "\n".join(sections), f"../{site}_master_index.html")


def write_category_report(
    rows: Sequence[ResultRow],
    site: str,
    category: DeviceCategory,
    mode: AddressingMode,
    output_dir: Path,
    run_categories: Sequence[DeviceCategory],
    run_dir_name: str | None = None,
) -> CategoryReport:
    """Write CSV and HTML for one category into the run directory under ``output_dir``."""
    run_dir = output_dir / (run_dir_name or RUN_DIRS[mode])
    run_dir.mkdir(parents=True, exist_ok=True)
    stem = report_stem(site, category, mode)
    csv_path = run_dir / f"{stem}.csv"
    html_path = run_dir / f"{stem}.html"

    write_csv(rows, csv_path, mode)
    html_path.write_text(render_category_html(rows, site, category, mode, run_categories), encoding="utf-8")
    logger.info("Wrote %s and %s (%d rows)", csv_path, html_path, len(rows))

    return CategoryReport(
        category=category,
        title=CATEGORY_TITLES[category],
        csv_path=csv_path,
        html_path=html_path,
        identifiers=len(group_rows(rows)),
        rows=len(rows),
        errors=sum(1 for r in rows if r.is_error),
    )


def write_run_index(site: str, run: RunReport, output_dir: Path) -> Path:
    """Index page of one run, one card per category report."""
    run_dir = output_dir / run.run_dir
    run_dir.mkdir(parents=True, exist_ok=True)
    cards = [
        f'<p class="stats">Site: {html.escape(site)} | Generated: {datetime.now():%Y-%m-%d %H:%M:%S}</p>'
    ]
    label = "TTIDs" if run.mode == AddressingMode.TTID else "Positions"
    for rep in run.reports:
        cards.append(
            '<div class="card">'
            f"<h2>{html.escape(rep.title)}</h2>"
            f'<p class="stats">{label}: {rep.identifiers} | Entries: {rep.rows} | Errors: {rep.errors}</p>'
            f'<a href="{html.escape(rep.html_path.name)}">View Report</a>'
            "</div>"
        )
    for err in run.errors:
        cards.append(f'<div class="card error">{html.escape(err)}</div>')
    path = run_dir / f"{site}_index.html"
    path.write_text(_page(f"Modbus Reports Index - {run.name}", "\n".join(cards), f"../{site}_master_index.html"), encoding="utf-8")
    run.index_path = path
    return path


def write_master_index(site: str, runs: Sequence[RunReport], errors: Sequence[str], output_dir: Path) -> Path:
    """Top-level page linking each run index and listing run-level errors."""
    output_dir.mkdir(parents=True, exist_ok=True)
    parts = [f'<p class="stats">Site: {html.escape(site)} | Generated: {datetime.now():%Y-%m-%d %H:%M:%S}</p>']
    for run in runs:
        href = f"{run.run_dir}/{run.index_path.name}" if run.index_path else ""
        parts.append(
            '<div class="card">'
            f"<h2>{html.escape(run.name)}</h2>"
            f'<p class="stats">Reports: {len(run.reports)}</p>'
            + (f'<a href="{html.escape(href)}">Open</a>' if href else "")
            + "</div>"
        )
    for err in errors:
        parts.append(f'<div class="card error">{html.escape(err)}</div>')
    path = output_dir / f"{site}_master_index.html"
    path.write_text(_page("Modbus Reports", "\n".join(parts), None), encoding="utf-8")
    return path

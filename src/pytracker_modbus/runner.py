"""Full report run: toggle the remote mode, poll each category on its own connection, write reports."""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Sequence

from .client import SiteModbusClient
from .config import Settings
from .errors import FieldSpecError, ModbusIOError
from .fieldspec import FieldSpecSource
from .identifiers import read_positions, read_ttids
from .mode import ModeToggleClient, ToggleOutcome
from .poller import poll
from .report import LEGACY_SORTED_DIR, RunReport, write_category_report, write_master_index, write_run_index
from .types import AddressingMode, DeviceCategory, ResultRow

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., Any]

TTID_CATEGORIES = (DeviceCategory.ROW, DeviceCategory.WEATHER, DeviceCategory.REPEATER, DeviceCategory.NETWORK)
POSITION_CATEGORIES = (DeviceCategory.ASSETS, DeviceCategory.NETWORK)
SORTED_POSITION_CATEGORIES = (DeviceCategory.ROW, DeviceCategory.WEATHER, DeviceCategory.NETWORK)

# Network controllers always sit at TTID 1 / position 0
NETWORK_TTIDS = [1]
NETWORK_POSITIONS = [0]


@dataclass
class RunSummary:
    """Everything one invocation produced."""

    runs: list[RunReport] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    toggles: dict[str, ToggleOutcome] = field(default_factory=dict)
    master_index: Path | None = None

    @property
    def ok(self) -> bool:
        return not self.errors and all(not r.errors for r in self.runs)


def reset_output_dir(path: Path) -> None:
    """Delete and recreate the output directory."""
    if path.exists():
        shutil.rmtree(path)
        logger.info("Deleted existing output dir: %s", path)
    path.mkdir(parents=True, exist_ok=True)


def poll_category(
    category: DeviceCategory,
    identifiers: Sequence[Any],
    mode: AddressingMode,
    settings: Settings,
    specs: FieldSpecSource,
    client_factory: ClientFactory = SiteModbusClient,
) -> list[ResultRow]:
    """
    Poll one category on a fresh connection.
    Raises FieldSpecError or ModbusConnectionError, which abort this category only.
    """
    field_specs = specs.for_category(category)
    with client_factory(settings.site, port=settings.port, timeout=settings.modbus_timeout) as client:
        return poll(
            category,
            identifiers,
            field_specs,
            client.read_registers,
            site=settings.site,
            mode=mode,
        )


def run_report(
    name: str,
    mode: AddressingMode,
    plan: Sequence[tuple[DeviceCategory, Sequence[Any]]],
    settings: Settings,
    specs: FieldSpecSource,
    client_factory: ClientFactory = SiteModbusClient,
    directory: str = "",
) -> RunReport:
    """Poll and write every (category, identifiers) pair of one run, then its index page."""
    run = RunReport(name=name, mode=mode, directory=directory)
    categories = [cat for cat, ids in plan if ids]
    for category, identifiers in plan:
        if not identifiers:
            logger.info("%s: no identifiers for %s, skipping", name, category.value)
            continue
        try:
            rows = poll_category(category, identifiers, mode, settings, specs, client_factory)
        except (FieldSpecError, ModbusIOError) as e:
            msg = f"{name} / {category.value}: {e}"
            logger.error("Category aborted: %s", msg)
            run.errors.append(msg)
            continue
        run.reports.append(
            write_category_report(
                rows, settings.site, category, mode, settings.output_dir, categories, run.run_dir
            )
        )
    write_run_index(settings.site, run, settings.output_dir)
    return run


def _toggle(toggle: ModeToggleClient | None, mode_name: str, summary: RunSummary) -> None:
    if toggle is None:
        return
    outcome = toggle.set_mode(mode_name)
    summary.toggles[mode_name] = outcome
    if outcome.ok:
        logger.info("Mode %s applied with flags %s", mode_name, outcome.applied_flags)
    else:
        logger.warning("Mode %s not applied (%s); continuing", mode_name, outcome.reason)


def run_all_reports(
    settings: Settings,
    *,
    client_factory: ClientFactory = SiteModbusClient,
    toggle: ModeToggleClient | None = None,
    specs: FieldSpecSource | None = None,
) -> RunSummary:
    """
    Generate the TTID run (if the TTID CSV exists), the legacy unsorted and legacy sorted
    position runs (if the Position CSV exists), then the master index. Each run toggles
    its remote mode first.
    """
    summary = RunSummary()
    specs = specs if specs is not None else FieldSpecSource(settings.spec_dir)
    reset_output_dir(settings.output_dir)

    if settings.ttid_csv.is_file():
        _toggle(toggle, "ttid", summary)
        try:
            ttids = read_ttids(settings.ttid_csv)
        except (OSError, ValueError) as e:
            summary.errors.append(f"TTID Sorted: {e}")
        else:
            plan = [(cat, ttids) for cat in TTID_CATEGORIES[:-1]] + [(DeviceCategory.NETWORK, NETWORK_TTIDS)]
            summary.runs.append(
                run_report("TTID Sorted", AddressingMode.TTID, plan, settings, specs, client_factory)
            )
    else:
        logger.warning("Skipping TTID Sorted: TTID CSV not found (%s)", settings.ttid_csv)

    if settings.position_csv.is_file():
        _toggle(toggle, "legacy-unsorted", summary)
        try:
            positions = read_positions(settings.position_csv)
        except (OSError, ValueError) as e:
            summary.errors.append(f"Legacy Unsorted: {e}")
        else:
            plan = [(cat, positions) for cat in POSITION_CATEGORIES[:-1]]
            plan.append((DeviceCategory.NETWORK, NETWORK_POSITIONS))
            summary.runs.append(
                run_report("Legacy Unsorted", AddressingMode.POSITION, plan, settings, specs, client_factory)
            )

            _toggle(toggle, "legacy-sorted", summary)
            plan = [(cat, positions) for cat in SORTED_POSITION_CATEGORIES[:-1]]
            plan.append((DeviceCategory.NETWORK, NETWORK_POSITIONS))
            summary.runs.append(
                run_report(
                    "Legacy Sorted",
                    AddressingMode.POSITION,
                    plan,
                    settings,
                    specs,
                    client_factory,
                    directory=LEGACY_SORTED_DIR,
                )
            )
    else:
        logger.warning("Skipping legacy runs: Position CSV not found (%s)", settings.position_csv)

    summary.master_index = write_master_index(settings.site, summary.runs, summary.errors, settings.output_dir)
    return summary

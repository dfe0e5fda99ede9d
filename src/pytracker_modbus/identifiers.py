"""Identifier sources: TTID and Position columns from CSV files, plus numeric coercion."""

import csv
import logging
import math
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TTID_COLUMN = "TTID"
POSITION_COLUMN = "Position"


def read_identifier_column(csv_path: Path | str, column: str) -> list[str]:
    """
    Return the stripped, non-empty values of ``column`` in file order.
    Duplicates are preserved; rows without the column are skipped.
    """
    values: list[str] = []
    with open(csv_path, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        for row in reader:
            cell = (row.get(column) or "").strip()
            if cell:
                values.append(cell)
    logger.debug("Read %d %s values from %s", len(values), column, csv_path)
    return values


def read_ttids(csv_path: Path | str) -> list[str]:
    return read_identifier_column(csv_path, TTID_COLUMN)


def read_positions(csv_path: Path | str) -> list[str]:
    return read_identifier_column(csv_path, POSITION_COLUMN)


def coerce_identifier(raw: Any) -> int | None:
    """
    Return the integer an identifier names, or None when it is not a whole finite number.

    Accepts ints, integral floats and numeric strings ("12", " 12 ", "12.0").
    """
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        number = raw
    else:
        s = str(raw).strip()
        if not s:
            return None
        try:
            return int(s)
        except ValueError:
            pass
        try:
            number = float(s)
        except ValueError:
            return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)

"""Field spec loading: JSON register maps per device category, validated into FieldSpec."""

import json
import logging
import math
from pathlib import Path
from typing import Any

from .errors import FieldSpecError
from .types import DeviceCategory, FieldSpec

logger = logging.getLogger(__name__)

ASSETS_SPEC_FILE = "unsorted_assets.json"
NETWORK_SPEC_FILE = "unsorted_nc.json"


def _to_number(raw: Any) -> int | float:
    """Coerce a BaseReg/Size cell to a number; anything unparseable becomes NaN."""
    if isinstance(raw, bool) or raw is None:
        return math.nan
    if isinstance(raw, (int, float)):
        return raw
    s = str(raw).strip()
    if not s:
        return math.nan
    try:
        return int(s, 0)
    except ValueError:
        pass
    try:
        return float(s)
    except ValueError:
        return math.nan


def _as_int_if_integral(value: int | float) -> int | float:
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return value


def _parse_entry(raw: Any) -> FieldSpec:
    """Build FieldSpec from a JSON entry (ID, BaseReg, Size, Codec). Malformed values are kept."""
    if not isinstance(raw, dict):
        return FieldSpec(field_id="", base_register=math.nan, register_count=math.nan)
    field_id = str(raw.get("ID") or "").strip()
    codec = raw.get("Codec")
    return FieldSpec(
        field_id=field_id,
        base_register=_as_int_if_integral(_to_number(raw.get("BaseReg"))),
        register_count=_as_int_if_integral(_to_number(raw.get("Size"))),
        codec=str(codec) if codec is not None else "",
    )


def parse_field_specs(entries: Any) -> list[FieldSpec]:
    """Validate a decoded JSON document into an ordered list of FieldSpec."""
    if isinstance(entries, dict) and "entries" in entries:
        entries = entries["entries"]
    if not isinstance(entries, list):
        raise FieldSpecError(f"Field spec must be a JSON list, got {type(entries).__name__}")
    specs = [_parse_entry(e) for e in entries]
    invalid = sum(1 for s in specs if not s.is_valid)
    if invalid:
        logger.warning("Field spec has %d malformed entr%s", invalid, "y" if invalid == 1 else "ies")
    return specs


def load_field_specs(path: Path | str) -> list[FieldSpec]:
    """Load one field spec file. Raises FieldSpecError when missing or not a JSON list."""
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FieldSpecError(f"Spec not found: {p}") from None
    except json.JSONDecodeError as e:
        raise FieldSpecError(f"Spec is not valid JSON: {p}: {e}") from e
    specs = parse_field_specs(data)
    logger.debug("Field spec loaded from %s: %d entries", p, len(specs))
    return specs


class FieldSpecSource:
    """
    Field specs by device category: network controllers use the NC map, every other
    category the asset map. Loaded from a spec directory, or from in-memory overrides.
    """

    def __init__(
        self,
        spec_dir: Path | str | None = None,
        overrides: dict[str, list[dict[str, Any]]] | None = None,
    ) -> None:
        self._spec_dir = Path(spec_dir) if spec_dir is not None else None
        self._overrides = overrides
        self._cache: dict[str, list[FieldSpec]] = {}
        if self._spec_dir is None and overrides is None:
            raise ValueError("FieldSpecSource needs a spec_dir or overrides")

    @staticmethod
    def spec_name(category: DeviceCategory) -> str:
        return "nc" if category == DeviceCategory.NETWORK else "assets"

    def for_category(self, category: DeviceCategory) -> list[FieldSpec]:
        name = self.spec_name(category)
        if name not in self._cache:
            if self._overrides is not None:
                if name not in self._overrides:
                    raise FieldSpecError(f"No {name} field spec in overrides")
                self._cache[name] = parse_field_specs(self._overrides[name])
            elif self._spec_dir is not None:
                file_name = NETWORK_SPEC_FILE if name == "nc" else ASSETS_SPEC_FILE
                self._cache[name] = load_field_specs(self._spec_dir / file_name)
            else:
                raise FieldSpecError("No field spec directory or overrides configured")
        return self._cache[name]

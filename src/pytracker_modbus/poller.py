"""Register poller: identifiers x field specs -> address, read, hex assembly, decode, ResultRow."""

import logging
from typing import Any, Callable, Iterable, Iterator, Sequence

from .addressing import compute_start_address, compute_unit_id, parse_category
from .codec import combine_registers, decode_value, normalize_codec, pad_hex, unknown_codec_message
from .errors import (
    InvalidFieldSpecError,
    InvalidIdentifierError,
    ModbusConnectionError,
    UnknownDeviceCategoryError,
)
from .identifiers import coerce_identifier
from .types import AddressingMode, DecodeDiagnostic, DeviceCategory, FieldSpec, ResultRow, RowStatus

logger = logging.getLogger(__name__)

ReadRegisters = Callable[[int, int, int], Sequence[int]]

INVALID_IDENTIFIER = "Invalid identifier"
INVALID_FIELD_SPEC = "Invalid field spec"


def decode_registers(words: Iterable[int], raw_codec: str) -> tuple[str, RowStatus, Any]:
    """
    Turn register words into (combined hex, status, value) for one field.

    Words are assembled in register order, left-padded to the codec width and decoded.
    """
    codec = normalize_codec(raw_codec)
    combined = pad_hex(combine_registers(words), codec)
    try:
        value = decode_value(combined, codec)
    except ValueError as e:
        return combined, RowStatus.DIAGNOSTIC, f"Decode error: {e}"
    if value is None:
        if raw_codec:
            return combined, RowStatus.UNKNOWN_CODEC, unknown_codec_message(raw_codec)
        return combined, RowStatus.OK, None
    if isinstance(value, DecodeDiagnostic):
        return combined, RowStatus.DIAGNOSTIC, value.message
    return combined, RowStatus.OK, value


def iter_poll(
    category: DeviceCategory | str,
    identifiers: Iterable[Any],
    field_specs: Sequence[FieldSpec],
    read_registers: ReadRegisters,
    *,
    site: str = "",
    mode: AddressingMode = AddressingMode.TTID,
) -> Iterator[ResultRow]:
    """
    Yield ResultRows in identifier order, then field-spec order.

    Per-identifier and per-field failures become error rows; only a lost connection
    (ModbusConnectionError) propagates to the caller.
    """
    try:
        cat: DeviceCategory | str = parse_category(category)
    except UnknownDeviceCategoryError:
        cat = str(category)
    label = cat.value if isinstance(cat, DeviceCategory) else cat

    for raw_id in identifiers:
        number = coerce_identifier(raw_id)
        if number is None:
            logger.warning("%s: skipping invalid identifier %r", label, raw_id)
            yield ResultRow(
                identifier=raw_id,
                site=site,
                unit_id=None,
                field_id="",
                starting_address=None,
                register_count=None,
                status=RowStatus.INVALID_IDENTIFIER,
                error=INVALID_IDENTIFIER,
            )
            continue

        try:
            unit_id = compute_unit_id(cat, number, mode)
        except (InvalidIdentifierError, UnknownDeviceCategoryError) as e:
            logger.warning("%s: no unit id for %s: %s", label, number, e)
            yield ResultRow(
                identifier=raw_id,
                site=site,
                unit_id=None,
                field_id="",
                starting_address=None,
                register_count=None,
                status=RowStatus.ADDRESS_ERROR,
                error=f"Error: {e}",
            )
            continue

        for spec in field_specs:
            try:
                spec.validate()
            except InvalidFieldSpecError as e:
                logger.warning("%s %s: %s", label, number, e)
                yield ResultRow(
                    identifier=number,
                    site=site,
                    unit_id=unit_id,
                    field_id=spec.field_id,
                    starting_address=None,
                    register_count=spec.register_count,
                    status=RowStatus.INVALID_FIELD_SPEC,
                    error=INVALID_FIELD_SPEC,
                )
                continue

            base = int(spec.base_register)
            count = int(spec.register_count)
            address = compute_start_address(cat, number, unit_id, base, mode)
            logger.debug("%s %s %r: unit=%d addr=%d count=%d", label, number, spec.field_id, unit_id, address, count)

            try:
                words = read_registers(unit_id, address, count)
            except ModbusConnectionError:
                raise
            except Exception as e:
                logger.warning("%s %s %r: read failed at %d: %s", label, number, spec.field_id, address, e)
                yield ResultRow(
                    identifier=number,
                    site=site,
                    unit_id=unit_id,
                    field_id=spec.field_id,
                    starting_address=address,
                    register_count=count,
                    status=RowStatus.READ_ERROR,
                    error=f"Error: {e}",
                )
                continue

            combined, status, value = decode_registers(words, spec.codec)
            yield ResultRow(
                identifier=number,
                site=site,
                unit_id=unit_id,
                field_id=spec.field_id,
                starting_address=address,
                register_count=count,
                status=status,
                combined_hex=combined,
                decoded_value=value,
            )


def poll(
    category: DeviceCategory | str,
    identifiers: Iterable[Any],
    field_specs: Sequence[FieldSpec],
    read_registers: ReadRegisters,
    *,
    site: str = "",
    mode: AddressingMode = AddressingMode.TTID,
) -> list[ResultRow]:
    """Poll every identifier x field spec and return the rows in order (see iter_poll)."""
    rows = list(iter_poll(category, identifiers, field_specs, read_registers, site=site, mode=mode))
    errors = sum(1 for r in rows if r.is_error)
    logger.debug("%s: %d rows, %d errors", category, len(rows), errors)
    return rows

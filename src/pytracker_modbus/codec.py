"""Codec registry: alias normalization, register-word hex assembly, padding and decoding."""

import re
import struct
from typing import Iterable

from .types import CanonicalCodec, DecodeDiagnostic, Value

# Free-form codec names found in field spec files -> canonical kind
CODEC_ALIASES: dict[str, CanonicalCodec] = {
    "asciiz": CanonicalCodec.ASCII,
    "utf8": CanonicalCodec.ASCII,
    "text": CanonicalCodec.ASCII,
    "string": CanonicalCodec.ASCII,
    "ascii": CanonicalCodec.ASCII,
    "float": CanonicalCodec.FLOAT32,
    "floatbe": CanonicalCodec.FLOAT32,
    "float32": CanonicalCodec.FLOAT32,
    "int": CanonicalCodec.INT32,
    "int32": CanonicalCodec.INT32,
    "i32": CanonicalCodec.INT32,
    "uint": CanonicalCodec.UINT32,
    "u32": CanonicalCodec.UINT32,
    "uint32": CanonicalCodec.UINT32,
    "u64": CanonicalCodec.UINT64,
    "uint64": CanonicalCodec.UINT64,
    "int64": CanonicalCodec.INT64,
    "i64": CanonicalCodec.INT64,
    "int16": CanonicalCodec.INT16,
    "i16": CanonicalCodec.INT16,
    "s16": CanonicalCodec.INT16,
    "uint16": CanonicalCodec.UINT16,
    "u16": CanonicalCodec.UINT16,
    "bool": CanonicalCodec.BOOLEAN,
    "boolean": CanonicalCodec.BOOLEAN,
    "hex": CanonicalCodec.HEX,
}

# (minimum bytes to decode, left-pad width in hex characters)
_CODEC_LAYOUT: dict[CanonicalCodec, tuple[int, int]] = {
    CanonicalCodec.ASCII: (0, 0),
    CanonicalCodec.HEX: (0, 0),
    CanonicalCodec.INT16: (2, 4),
    CanonicalCodec.UINT16: (2, 4),
    CanonicalCodec.BOOLEAN: (2, 4),
    CanonicalCodec.FLOAT32: (4, 8),
    CanonicalCodec.INT32: (4, 8),
    CanonicalCodec.UINT32: (4, 8),
    CanonicalCodec.UINT64: (8, 16),
    CanonicalCodec.INT64: (8, 16),
}

_WHITESPACE = re.compile(r"\s+")


def normalize_codec(name: str | None) -> CanonicalCodec | str:
    """
    Resolve a codec name to its canonical kind.

    Lower-cases and removes whitespace before the alias lookup. Unknown names are
    returned in that normalized form so decoding reports them instead of failing the read.
    """
    key = _WHITESPACE.sub("", str(name or "").lower())
    return CODEC_ALIASES.get(key, key)


def min_bytes(codec: CanonicalCodec | str) -> int:
    layout = _CODEC_LAYOUT.get(codec) if isinstance(codec, CanonicalCodec) else None
    return layout[0] if layout else 0


def pad_width(codec: CanonicalCodec | str) -> int:
    """Hex characters a combined hex string is left-padded to before decoding (0 = none)."""
    layout = _CODEC_LAYOUT.get(codec) if isinstance(codec, CanonicalCodec) else None
    return layout[1] if layout else 0


def register_hex(word: int) -> str:
    """Render one register word as 4 lowercase hex digits; negative words wrap to 0x10000 + v."""
    if word < 0:
        word = 0x10000 + word
    return f"{word:04x}"


def combine_registers(words: Iterable[int]) -> str:
    """Concatenate register words, in register order, into one big-endian hex string."""
    return "".join(register_hex(int(w)) for w in words)


def pad_hex(hex_digits: str, codec: CanonicalCodec | str) -> str:
    """Left-pad with zeros to the codec width. Longer strings are never truncated."""
    return hex_digits.rjust(pad_width(codec), "0")


def _to_bytes(hex_digits: str) -> bytes:
    digits = hex_digits.strip()
    if len(digits) % 2:
        digits = "0" + digits
    return bytes.fromhex(digits)


def _not_enough(codec: CanonicalCodec) -> DecodeDiagnostic:
    return DecodeDiagnostic(f"Not enough bytes for {codec.value}")


def decode_value(hex_digits: str, codec: CanonicalCodec | str) -> Value | DecodeDiagnostic | None:
    """
    Decode a big-endian hex string with a canonical codec.

    Returns the value, a DecodeDiagnostic when the codec cannot produce one, or None for
    codecs outside the registry (callers decide how to report those).
    """
    if not isinstance(codec, CanonicalCodec):
        try:
            codec = CanonicalCodec(codec)
        except ValueError:
            return None

    # Raises ValueError for non-hex input, whatever the codec
    data = _to_bytes(hex_digits)
    if codec == CanonicalCodec.HEX:
        return "0x" + hex_digits.strip().upper()
    if codec == CanonicalCodec.INT64:
        return DecodeDiagnostic("Int64 decoding not implemented")
    if codec == CanonicalCodec.ASCII:
        return data.decode("utf-8", errors="replace").replace("\x00", "")

    if len(data) < min_bytes(codec):
        return _not_enough(codec)

    if codec == CanonicalCodec.FLOAT32:
        return struct.unpack(">f", data[:4])[0]
    if codec == CanonicalCodec.INT32:
        return struct.unpack(">i", data[:4])[0]
    if codec == CanonicalCodec.UINT32:
        return struct.unpack(">I", data[:4])[0]
    if codec == CanonicalCodec.UINT64:
        # Whole string, arbitrary precision, rendered as decimal text
        return str(int.from_bytes(data, "big"))
    if codec == CanonicalCodec.INT16:
        return struct.unpack(">h", data[:2])[0]
    if codec == CanonicalCodec.UINT16:
        return struct.unpack(">H", data[:2])[0]
    if codec == CanonicalCodec.BOOLEAN:
        return 1 if struct.unpack(">H", data[:2])[0] != 0 else 0
    return None


def unknown_codec_message(raw_codec: str) -> str:
    return f'Unknown codec "{raw_codec}"'

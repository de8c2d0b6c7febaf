"""
Content-addressed identity for datums: the Braille bijection.

Each byte maps to one codepoint, U+2800 + byte. This is NOT a hash; it is
a lossless, invertible mapping used as a compact human-legible address.

  [0x55]       -> glyph "⡕", IRI https://uor.foundation/u/U2855
  [0x55, 0xAA] -> IRI https://uor.foundation/u/U2855U28AA
"""

import re
from typing import Sequence, Tuple

from .config import BASE_IRI
from .errors import ValidationError

GLYPH_BASE = 0x2800
GLYPH_LAST = 0x28FF

_SEGMENT = re.compile(r"U([0-9A-Fa-f]{4})")


def codepoint(byte: int) -> int:
    return GLYPH_BASE + (byte & 0xFF)


def bytes_to_glyph(data: Sequence[int]) -> str:
    """One Braille symbol per byte."""
    return "".join(chr(codepoint(b)) for b in data)


def glyph_to_bytes(glyph: str) -> Tuple[int, ...]:
    """Inverse of bytes_to_glyph."""
    out = []
    for i, ch in enumerate(glyph):
        cp = ord(ch)
        if not GLYPH_BASE <= cp <= GLYPH_LAST:
            raise ValidationError(f"Character {i} (U+{cp:04X}) is outside the glyph alphabet")
        out.append(cp - GLYPH_BASE)
    return tuple(out)


def bytes_to_uplus(data: Sequence[int]) -> str:
    return " ".join(f"U+{codepoint(b):04X}" for b in data)


def bytes_to_iri(data: Sequence[int], base_iri: str = BASE_IRI) -> str:
    codes = "".join(f"U{codepoint(b):04X}" for b in data)
    return f"{base_iri}{codes}"


def iri_to_bytes(iri: str, base_iri: str = BASE_IRI) -> Tuple[int, ...]:
    """
    Parse an IRI (or its bare U{HEX4}... path) back to bytes.

    Raises ValidationError for codepoints outside U+2800..U+28FF or when
    no segment is present.
    """
    path = iri[len(base_iri):] if iri.startswith(base_iri) else iri
    out = []
    for match in _SEGMENT.finditer(path):
        cp = int(match.group(1), 16)
        if not GLYPH_BASE <= cp <= GLYPH_LAST:
            raise ValidationError(
                f"Invalid codepoint 0x{cp:x}: must be in U+2800..U+28FF"
            )
        out.append(cp - GLYPH_BASE)
    if not out:
        raise ValidationError(f"No U{{HEX4}} segments found in IRI: {iri}")
    return tuple(out)

"""
Triadic coordinates of a datum.

Every datum decomposes into:
  - datum:    the byte tuple, WHAT it is
  - stratum:  popcount per byte, HOW MUCH information it carries
  - spectrum: set bit positions per byte (0 = LSB), WHICH bits compose it
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from .errors import ValidationError


@dataclass(frozen=True)
class Triad:
    """The three coordinates of any datum."""
    datum: Tuple[int, ...]   # x: value (tuple of bytes)
    stratum: Tuple[int, ...] # y: weight per position
    spectrum: Tuple[Tuple[int, ...], ...]  # z: basis elements per position

    @property
    def total_stratum(self) -> int:
        return sum(self.stratum)

    @property
    def width(self) -> int:
        return len(self.datum)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "datum": list(self.datum),
            "stratum": list(self.stratum),
            "spectrum": [list(s) for s in self.spectrum],
            "totalStratum": self.total_stratum,
        }


def byte_popcount(n: int) -> int:
    return bin(n).count("1")


def byte_basis(n: int) -> Tuple[int, ...]:
    return tuple(i for i in range(8) if n & (1 << i))


def byte_dots(n: int) -> Tuple[int, ...]:
    """Braille dot numbering: the basis shifted to 1-indexed."""
    return tuple(i + 1 for i in byte_basis(n))


def triad(datum: Sequence[int], width: Optional[int] = None) -> Triad:
    """
    Decompose a byte tuple into its triad.

    Raises ValidationError on a byte outside [0, 255], or on a length
    mismatch when an expected width is given.
    """
    b = tuple(datum)
    if not b:
        raise ValidationError("Datum must contain at least one byte")
    if width is not None and len(b) != width:
        raise ValidationError(f"Expected {width} bytes, got {len(b)}")
    for i, x in enumerate(b):
        if not isinstance(x, int) or isinstance(x, bool) or not (0 <= x <= 0xFF):
            raise ValidationError(f"Byte {i} out of range: {x}")
    return Triad(
        datum=b,
        stratum=tuple(byte_popcount(x) for x in b),
        spectrum=tuple(byte_basis(x) for x in b),
    )


def stratum_level(total_stratum: int, bits: int) -> str:
    """Classify stratum density as low (<= 1/3), medium (<= 2/3) or high."""
    if bits == 0:
        return "low"
    density = total_stratum / bits
    if density <= 1 / 3:
        return "low"
    if density <= 2 / 3:
        return "medium"
    return "high"


def stratum_density(total_stratum: int, bits: int) -> float:
    """Percentage of set bits."""
    if bits == 0:
        return 0.0
    return total_stratum / bits * 100

"""Correlation between ring elements via XOR-stratum (Hamming distance)."""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .ring import UOR, Operand
from .triad import stratum_level


@dataclass(frozen=True)
class Correlation:
    a: str
    b: str
    difference: str
    difference_stratum: Tuple[int, ...]
    total_difference: int
    max_difference: int

    @property
    def fidelity(self) -> float:
        """1 for identical elements, 0 for complements."""
        return 1.0 - (self.total_difference / self.max_difference)

    @property
    def level(self) -> str:
        return stratum_level(self.total_difference, self.max_difference)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "a": self.a,
            "b": self.b,
            "difference": self.difference,
            "differenceStratum": list(self.difference_stratum),
            "totalDifference": self.total_difference,
            "maxDifference": self.max_difference,
            "fidelity": self.fidelity,
        }


def correlate(ring: UOR, a: Operand, b: Operand) -> Correlation:
    ba = ring.normalize(a)
    bb = ring.normalize(b)
    diff = ring.xor(ba, bb)
    diff_stratum = ring.stratum(diff)
    return Correlation(
        a=ring.glyph(ba),
        b=ring.glyph(bb),
        difference=ring.glyph(diff),
        difference_stratum=diff_stratum,
        total_difference=sum(diff_stratum),
        max_difference=ring.bits,
    )


def fidelity(ring: UOR, a: Operand, b: Operand) -> float:
    return correlate(ring, a, b).fidelity

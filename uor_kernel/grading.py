"""
Epistemic grades: how strongly a fact is evidenced.

    A  Algebraically proven: derivation id exists, ring coherence verified
    B  Certified: a certificate exists
    C  Present: stored with a source, no derivation
    D  Unverified: none of the above

Grades form the chain D < C < B < A and only ever move up.
"""

import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


@functools.total_ordering
class EpistemicGrade(Enum):
    D = "D"
    C = "C"
    B = "B"
    A = "A"

    @property
    def rank(self) -> int:
        return _RANK[self.value]

    @property
    def label(self) -> str:
        return _LABELS[self.value]

    def __lt__(self, other):
        if not isinstance(other, EpistemicGrade):
            return NotImplemented
        return self.rank < other.rank


_RANK = {"D": 0, "C": 1, "B": 2, "A": 3}
_LABELS = {
    "A": "Algebraically Proven",
    "B": "Graph-Certified",
    "C": "Graph-Present",
    "D": "Unverified",
}


def compute_grade(
    has_derivation: bool = False,
    has_certificate: bool = False,
    has_source: bool = False,
    coherence_verified: bool = True,
) -> EpistemicGrade:
    """Grade a fact from the evidence available for it."""
    if has_derivation and coherence_verified:
        return EpistemicGrade.A
    if has_certificate:
        return EpistemicGrade.B
    if has_source:
        return EpistemicGrade.C
    return EpistemicGrade.D


@dataclass(frozen=True)
class GradeChange:
    iri: str
    previous: EpistemicGrade
    current: EpistemicGrade

    @property
    def upgraded(self) -> bool:
        return self.current > self.previous

    def to_dict(self) -> Dict[str, object]:
        return {
            "iri": self.iri,
            "previousGrade": self.previous.value,
            "newGrade": self.current.value,
            "upgraded": self.upgraded,
        }


GradeObserver = Callable[[GradeChange], None]


class GradeLedger:
    """
    Recorded grade per IRI. There is no setter: `upgrade` is a no-op unless
    the requested grade is strictly higher than the recorded one.

    Observers are called once per effective upgrade.
    """

    def __init__(self, observers: Optional[Iterable[GradeObserver]] = None):
        self._grades: Dict[str, EpistemicGrade] = {}
        self._observers: List[GradeObserver] = list(observers or [])

    def __len__(self) -> int:
        return len(self._grades)

    def __contains__(self, iri: str) -> bool:
        return iri in self._grades

    def grade_of(self, iri: str) -> EpistemicGrade:
        return self._grades.get(iri, EpistemicGrade.D)

    def upgrade(self, iri: str, grade: EpistemicGrade) -> GradeChange:
        previous = self.grade_of(iri)
        if grade <= previous:
            return GradeChange(iri, previous, previous)

        self._grades[iri] = grade
        change = GradeChange(iri, previous, grade)
        logger.debug("Grade %s: %s -> %s", iri, previous.value, grade.value)
        for observer in self._observers:
            observer(change)
        return change

    def snapshot(self) -> Dict[str, str]:
        return {iri: g.value for iri, g in sorted(self._grades.items())}

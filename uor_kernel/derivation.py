"""
Derivations: auditable records binding a term to the datum it evaluates to.

    original term --canonicalize--> canonical term --evaluate--> datum

The derivation id is content-addressed from the CANONICAL term and the
result IRI, so terms that canonicalize identically share one id. The
timestamp is recorded alongside but is never part of the hashed content.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from .canonical import sha256_hex
from .grading import EpistemicGrade, compute_grade
from .ring import UOR, ByteTuple
from .terms import Term, TermAlgebra, TermMetrics, parse_term

logger = logging.getLogger(__name__)

DERIVATION_URN = "urn:uor:derivation:sha256:"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def derivation_id(canonical_text: str, result_iri: str) -> str:
    return DERIVATION_URN + sha256_hex(f"{canonical_text}={result_iri}")


@dataclass(frozen=True)
class DerivationMetrics:
    original_complexity: int
    canonical_complexity: int
    term: TermMetrics

    @property
    def reduction_ratio(self) -> float:
        if self.original_complexity <= 0:
            return 0.0
        return 1 - self.canonical_complexity / self.original_complexity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalComplexity": self.original_complexity,
            "canonicalComplexity": self.canonical_complexity,
            "reductionRatio": self.reduction_ratio,
            "termMetrics": self.term.to_dict(),
        }


@dataclass(frozen=True)
class Derivation:
    """
    Provenance record: what was computed, from what, and how much the
    canonical form reduced it. Many terms, one datum.
    """
    derivation_id: str
    original_term: str
    canonical_term: str
    result_value: int
    result_iri: str
    epistemic_grade: EpistemicGrade
    metrics: DerivationMetrics
    quantum: int
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "@type": "derivation:Record",
            "derivationId": self.derivation_id,
            "originalTerm": self.original_term,
            "canonicalTerm": self.canonical_term,
            "resultValue": self.result_value,
            "resultIri": self.result_iri,
            "epistemicGrade": self.epistemic_grade.value,
            "metrics": self.metrics.to_dict(),
            "quantum": self.quantum,
            "timestamp": self.timestamp,
        }


TermLike = Union[Term, str]


class DerivationEngine:
    """Mints derivations for one ring. Refuses to work on an incoherent ring."""

    def __init__(self, ring: UOR):
        self.ring = ring
        self.algebra = TermAlgebra(ring)

    def _as_term(self, term: TermLike) -> Term:
        return parse_term(term) if isinstance(term, str) else term

    def canonicalize(self, term: TermLike) -> Term:
        return self.algebra.canonicalize(self._as_term(term))

    def evaluate(self, term: TermLike) -> ByteTuple:
        return self.algebra.evaluate(self._as_term(term))

    def derive(self, term: TermLike) -> Derivation:
        """
        Canonicalize, evaluate, and address a term.

        The ring must pass self-verification first; CoherenceError otherwise.
        """
        coherence = self.ring.require_coherent()
        term = self._as_term(term)
        width = self.ring.width

        canonical = self.algebra.canonicalize(term)
        canonical_text = canonical.canonical_serialize(width)
        result = self.algebra.evaluate(canonical)
        result_iri = self.ring.iri(result)

        metrics = DerivationMetrics(
            original_complexity=term.metrics().node_count,
            canonical_complexity=canonical.metrics().node_count,
            term=term.metrics(),
        )
        return Derivation(
            derivation_id=derivation_id(canonical_text, result_iri),
            original_term=term.canonical_serialize(width),
            canonical_term=canonical_text,
            result_value=UOR.from_bytes(result),
            result_iri=result_iri,
            epistemic_grade=compute_grade(has_derivation=True, coherence_verified=coherence.verified),
            metrics=metrics,
            quantum=self.ring.quantum,
            timestamp=utc_timestamp(),
        )

    def replay_mismatch(self, derivation: Derivation, original_term: TermLike) -> Optional[Dict[str, Any]]:
        """
        Re-derive from the original term. None when the id and the claimed
        result both reproduce, else the claimed and replayed values.
        """
        rederived = self.derive(original_term)
        claimed = _claim(derivation)
        replayed = _claim(rederived)
        if claimed == replayed:
            return None
        logger.warning("Derivation %s does not replay: claims %s, replay gives %s",
                       derivation.derivation_id, claimed, replayed)
        return {"expected": claimed, "actual": replayed}

    def verify(self, derivation: Derivation, original_term: TermLike) -> bool:
        """Re-derive from the original term; id and result must both match."""
        return self.replay_mismatch(derivation, original_term) is None


def _claim(d: Derivation) -> Dict[str, Any]:
    return {
        "derivationId": d.derivation_id,
        "resultValue": d.result_value,
        "resultIri": d.result_iri,
    }


def derive(ring: UOR, term: TermLike) -> Derivation:
    return DerivationEngine(ring).derive(term)


def verify_derivation(ring: UOR, derivation: Derivation, original_term: TermLike) -> bool:
    return DerivationEngine(ring).verify(derivation, original_term)

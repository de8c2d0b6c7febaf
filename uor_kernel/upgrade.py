"""
Promote a datum's grade by producing the evidence each grade requires.

    to A: derive the datum, certify the derivation, persist both
    to B: derive minimally and certify; only the certificate is persisted

Both are no-ops when the ledger already holds an equal or higher grade.
Persistence is best-effort; the grade reflects the evidence computed,
not whether it was stored.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .certificates import Certificate, CertificateIssuer
from .derivation import Derivation, DerivationEngine
from .errors import CoherenceError, Rejection, StoreError
from .grading import EpistemicGrade, GradeLedger
from .ring import UOR
from .store import Store, ingest_certificate, ingest_derivation
from .terms import const

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpgradeResult:
    previous_grade: EpistemicGrade
    new_grade: EpistemicGrade
    derivation: Optional[Derivation] = None
    certificate: Optional[Certificate] = None

    @property
    def upgraded(self) -> bool:
        return self.new_grade > self.previous_grade

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "previousGrade": self.previous_grade.value,
            "newGrade": self.new_grade.value,
            "upgraded": self.upgraded,
        }
        if self.derivation is not None:
            d["derivation"] = self.derivation.to_dict()
        if self.certificate is not None:
            d["certificate"] = self.certificate.to_dict()
        return d


def _persist(store: Optional[Store], fn, record, label: str) -> None:
    if store is None:
        return
    try:
        fn(store, record)
    except StoreError as e:
        logger.warning("%s not persisted: %s", label, e)


def _certify(ring: UOR, value: int):
    engine = DerivationEngine(ring)
    term = const(value)
    derivation = engine.derive(term)
    cert = CertificateIssuer(ring, engine).issue_transform(derivation, term)
    if isinstance(cert, Rejection):
        raise CoherenceError(f"Constant derivation failed to replay: {cert.message}")
    return derivation, cert


def _upgrade(ring: UOR, value: int, ledger: GradeLedger, target: EpistemicGrade,
             store: Optional[Store]) -> UpgradeResult:
    iri = ring.iri(value)
    current = ledger.grade_of(iri)
    if target <= current:
        return UpgradeResult(previous_grade=current, new_grade=current)

    derivation, cert = _certify(ring, value)
    if target == EpistemicGrade.A:
        _persist(store, ingest_derivation, derivation, f"Derivation {derivation.derivation_id}")
    _persist(store, ingest_certificate, cert, f"Certificate {cert.certificate_id}")
    ledger.upgrade(iri, target)
    return UpgradeResult(
        previous_grade=current,
        new_grade=target,
        derivation=derivation if target == EpistemicGrade.A else None,
        certificate=cert,
    )


def upgrade_to_a(ring: UOR, value: int, ledger: GradeLedger, store: Optional[Store] = None) -> UpgradeResult:
    return _upgrade(ring, value, ledger, EpistemicGrade.A, store)


def upgrade_to_b(ring: UOR, value: int, ledger: GradeLedger, store: Optional[Store] = None) -> UpgradeResult:
    return _upgrade(ring, value, ledger, EpistemicGrade.B, store)

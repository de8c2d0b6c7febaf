"""
Certificates: immutable proofs that a property holds.

Three kinds:

  Transform   a derivation replays to the result it claims
  Isometry    a shift T(x) = x + (target - source) mod cycle preserves a
              metric across a supplied set of test pairs
  Involution  op(op(x)) == x over the ring (exhaustive up to the
              enumeration ceiling, sampled beyond it)

A failed check never yields a certificate. The issuer returns a Rejection
carrying the reason code and the evidence instead.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .canonical import content_address
from .config import ISOMETRY_MAX_PAIRS, ISOMETRY_MIN_PAIRS
from .derivation import Derivation, DerivationEngine, TermLike, utc_timestamp
from .errors import (BLOCKED, DERIVATION_MISMATCH, NOT_INVOLUTION, NOT_ISOMETRY,
                     OUT_OF_RANGE, Rejection, ValidationError)
from .identity import iri_to_bytes
from .partition import classify
from .ring import UOR

logger = logging.getLogger(__name__)

CERT_URN = "urn:uor:cert:"

TRANSFORM = "Transform"
ISOMETRY = "Isometry"
INVOLUTION = "Involution"

METRICS = ("ring", "hamming")


@dataclass(frozen=True)
class Certificate:
    certificate_id: str
    kind: str
    certifies: str
    valid: bool
    issued_at: str
    derivation_id: Optional[str] = None
    cert_chain: Tuple[str, ...] = ()
    evidence: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "@type": f"cert:{self.kind}Certificate",
            "certificateId": self.certificate_id,
            "certifies": self.certifies,
            "valid": self.valid,
            "issuedAt": self.issued_at,
            "certChain": list(self.cert_chain),
        }
        if self.derivation_id is not None:
            d["derivationId"] = self.derivation_id
        d.update(self.evidence)
        return d


Outcome = Union[Certificate, Rejection]


def ring_distance(a: int, b: int, cycle: int) -> int:
    d = (a - b) % cycle
    return min(d, cycle - d)


def hamming_distance(a: int, b: int) -> int:
    return bin(a ^ b).count("1")


class CertificateIssuer:
    """Issues certificates against one ring."""

    def __init__(self, ring: UOR, engine: Optional[DerivationEngine] = None):
        self.ring = ring
        self.engine = engine or DerivationEngine(ring)

    def _metric(self, name: str):
        if name == "ring":
            cycle = self.ring.cycle
            return lambda a, b: ring_distance(a, b, cycle)
        if name == "hamming":
            return hamming_distance
        raise ValidationError(f"Unknown metric {name!r}; expected one of {', '.join(METRICS)}")

    def _reject(self, reason: str, message: str, **evidence: Any) -> Rejection:
        logger.info("Certificate refused (%s): %s", reason, message)
        return Rejection(reason=reason, message=message, evidence=evidence)

    # ═══════════════════════════════════════════════════════════════════════════
    # TRANSFORM
    # ═══════════════════════════════════════════════════════════════════════════

    def issue_transform(
        self,
        derivation: Derivation,
        original_term: TermLike,
        parent_chain: Sequence[str] = (),
    ) -> Outcome:
        """
        Replay the derivation; certify it only if the replay reproduces
        both its id and its claimed result.
        """
        self.ring.require_coherent()
        mismatch = self.engine.replay_mismatch(derivation, original_term)
        if mismatch is not None:
            return self._reject(
                DERIVATION_MISMATCH,
                f"Derivation {derivation.derivation_id} does not replay from {original_term}",
                derivationId=derivation.derivation_id,
                **mismatch,
            )

        payload = {
            "derivationId": derivation.derivation_id,
            "resultIri": derivation.result_iri,
            "valid": True,
        }
        cert = Certificate(
            certificate_id=CERT_URN + content_address(payload),
            kind=TRANSFORM,
            certifies=derivation.result_iri,
            valid=True,
            issued_at=utc_timestamp(),
            derivation_id=derivation.derivation_id,
            cert_chain=tuple(parent_chain) + (derivation.derivation_id,),
        )
        logger.info("Issued %s certificate %s", cert.kind, cert.certificate_id)
        return cert

    # ═══════════════════════════════════════════════════════════════════════════
    # ISOMETRY
    # ═══════════════════════════════════════════════════════════════════════════

    def issue_isometry(
        self,
        source: int,
        target: int,
        pairs: Iterable[Tuple[int, int]],
        metric: str = "ring",
    ) -> Outcome:
        """
        Certify that the shift taking source to target preserves `metric`
        on every test pair.

        Same-class source and target is BLOCKED: a trivial identity is not
        a genuine isometry. Any failing pair rejects the whole request with
        every pair's measurements attached.
        """
        self.ring.require_coherent()
        distance = self._metric(metric)
        pairs = [tuple(p) for p in pairs]
        if not ISOMETRY_MIN_PAIRS <= len(pairs) <= ISOMETRY_MAX_PAIRS:
            raise ValidationError(
                f"Isometry needs {ISOMETRY_MIN_PAIRS}..{ISOMETRY_MAX_PAIRS} test pairs, got {len(pairs)}"
            )
        for p in pairs:
            if len(p) != 2:
                raise ValidationError(f"Test pair must have two elements, got {p!r}")

        cycle = self.ring.cycle
        outside = [v for v in [source, target] + [x for p in pairs for x in p]
                   if not self.ring.contains(v)]
        if outside:
            return self._reject(OUT_OF_RANGE, f"Values outside [0, {cycle}): {outside}",
                                values=outside)

        source_class = classify(source, self.ring.bits).component
        target_class = classify(target, self.ring.bits).component
        if source_class == target_class:
            return self._reject(
                BLOCKED,
                f"Source and target share {source_class.value}: trivial identity, not an isometry",
                sourceClass=source_class.value,
                targetClass=target_class.value,
            )

        shift = (target - source) % cycle
        results: List[Dict[str, Any]] = []
        for a, b in pairs:
            ta, tb = (a + shift) % cycle, (b + shift) % cycle
            before, after = distance(a, b), distance(ta, tb)
            results.append({
                "pair": [a, b],
                "image": [ta, tb],
                "before": before,
                "after": after,
                "preserved": before == after,
            })

        failing = [r for r in results if not r["preserved"]]
        if failing:
            return self._reject(
                NOT_ISOMETRY,
                f"{len(failing)} of {len(results)} pairs do not preserve {metric} distance",
                metric=metric,
                shift=shift,
                pairs=results,
                failingPairs=[r["pair"] for r in failing],
            )

        evidence = {
            "source": self.ring.iri(source),
            "target": self.ring.iri(target),
            "sourceClass": source_class.value,
            "targetClass": target_class.value,
            "metric": metric,
            "shift": shift,
            "pairs": results,
        }
        cert = Certificate(
            certificate_id=CERT_URN + content_address({"kind": ISOMETRY, "quantum": self.ring.quantum, **evidence}),
            kind=ISOMETRY,
            certifies=self.ring.iri(target),
            valid=True,
            issued_at=utc_timestamp(),
            evidence=evidence,
        )
        logger.info("Issued %s certificate %s (%s metric, %d pairs)",
                    cert.kind, cert.certificate_id, metric, len(results))
        return cert

    # ═══════════════════════════════════════════════════════════════════════════
    # INVOLUTION
    # ═══════════════════════════════════════════════════════════════════════════

    def issue_involution(self, op: str) -> Outcome:
        """Certify op(op(x)) == x for op in the ring's involutions."""
        self.ring.require_coherent()
        if op not in UOR.INVOLUTIONS:
            raise ValidationError(f"{op!r} is not a candidate involution; expected one of {UOR.INVOLUTIONS}")

        values, exhaustive = self.ring.verification_values()
        apply = getattr(self.ring, op)
        failures = [x for x in values if UOR.from_bytes(apply(apply(x))) != x]
        if failures:
            return self._reject(
                NOT_INVOLUTION,
                f"{op}({op}(x)) != x at {len(failures)} element(s)",
                operation=op,
                failures=failures,
            )

        evidence = {
            "operation": op,
            "checked": len(values),
            "exhaustive": exhaustive,
            "ringSize": self.ring.cycle,
        }
        cert = Certificate(
            certificate_id=CERT_URN + content_address({"kind": INVOLUTION, "quantum": self.ring.quantum, **evidence}),
            kind=INVOLUTION,
            certifies=f"{self.ring.settings.base_iri}op/{op}",
            valid=True,
            issued_at=utc_timestamp(),
            evidence=evidence,
        )
        logger.info("Issued %s certificate %s (%d elements, %s)", cert.kind, cert.certificate_id,
                    len(values), "exhaustive" if exhaustive else "sampled")
        return cert

    # ═══════════════════════════════════════════════════════════════════════════
    # VERIFICATION
    # ═══════════════════════════════════════════════════════════════════════════

    def verify_certificate(
        self,
        cert: Certificate,
        original_term: Optional[TermLike] = None,
        derivation: Optional[Derivation] = None,
    ) -> bool:
        """
        Re-check a certificate from scratch.

        Transform certificates need the derivation and its original term.
        Isometry and involution certificates are re-issued from their own
        evidence and must reproduce the same id.
        """
        if not cert.valid:
            return False
        if cert.kind == TRANSFORM:
            if derivation is None or original_term is None:
                raise ValidationError("Transform certificates verify against a derivation and its term")
            return (cert.derivation_id == derivation.derivation_id
                    and cert.certifies == derivation.result_iri
                    and self.engine.verify(derivation, original_term))

        if cert.kind == INVOLUTION:
            reissued = self.issue_involution(cert.evidence["operation"])
        elif cert.kind == ISOMETRY:
            ev = cert.evidence
            base = self.ring.settings.base_iri
            reissued = self.issue_isometry(
                self.ring.value(iri_to_bytes(ev["source"], base)),
                self.ring.value(iri_to_bytes(ev["target"], base)),
                [tuple(r["pair"]) for r in ev["pairs"]],
                ev["metric"],
            )
        else:
            raise ValidationError(f"Unknown certificate kind {cert.kind!r}")
        return isinstance(reissued, Certificate) and reissued.certificate_id == cert.certificate_id

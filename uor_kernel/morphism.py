"""
Cross-quantum morphisms: maps between rings of different widths.

  embed     Qm -> Qn with m < n. Zero-pads the high bytes; injective.
  project   Qn -> Qm with m < n. Keeps the low bytes; lossless only when
            the dropped bytes were zero.
  identity  Qn -> Qn.

Each transform is content-addressed from its endpoints, kind and rule,
runs under a self-verifying receipt, and is written to the morphism graph
when a store is given.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .canonical import canonical_json, sha256_hex
from .config import Settings
from .derivation import utc_timestamp
from .errors import StoreError, ValidationError
from .receipts import Receipted, with_verified_receipt
from .ring import UOR
from .store import Store, ingest_triples

logger = logging.getLogger(__name__)

MORPHISM_URN = "urn:uor:morphism:"
MORPHISM_GRAPH = "urn:uor:graph:morphisms"
ID_LENGTH = 24

EMBED = "embed"
PROJECT = "project"
IDENTITY = "identity"

EMBEDDING = "Embedding"
ISOMETRY = "Isometry"
TRANSFORM = "Transform"


@dataclass(frozen=True)
class MappingRule:
    label: str
    operation: str
    source_quantum: int
    target_quantum: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "operation": self.operation,
            "sourceQuantum": self.source_quantum,
            "targetQuantum": self.target_quantum,
        }


@dataclass(frozen=True)
class TransformRecord:
    transform_id: str
    kind: str
    rule: MappingRule
    source_value: int
    target_value: int
    source_iri: str
    target_iri: str
    lossless: bool
    timestamp: str

    @property
    def fidelity_preserved(self) -> bool:
        """Whether the source is recoverable from the target."""
        return self.kind in (EMBEDDING, ISOMETRY)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "@type": f"morphism:{self.kind}",
            "transformId": self.transform_id,
            "sourceIri": self.source_iri,
            "targetIri": self.target_iri,
            "sourceValue": self.source_value,
            "targetValue": self.target_value,
            "sourceQuantum": self.rule.source_quantum,
            "targetQuantum": self.rule.target_quantum,
            "kind": self.kind,
            "rules": [self.rule.to_dict()],
            "lossless": self.lossless,
            "fidelityPreserved": self.fidelity_preserved,
            "timestamp": self.timestamp,
        }

    def to_node(self) -> Dict[str, Any]:
        return {
            "@id": self.transform_id,
            "@type": f"morphism:{self.kind}",
            "morphism:source": self.source_iri,
            "morphism:target": self.target_iri,
            "morphism:sourceQuantum": self.rule.source_quantum,
            "morphism:targetQuantum": self.rule.target_quantum,
            "morphism:operation": self.rule.operation,
            "morphism:fidelityPreserved": self.fidelity_preserved,
        }


def mapping_rule(source_quantum: int, target_quantum: int) -> MappingRule:
    if source_quantum == target_quantum:
        op, label = IDENTITY, "Identity"
    elif source_quantum < target_quantum:
        op, label = EMBED, "Zero-pad embedding"
    else:
        op, label = PROJECT, "Low-byte projection"
    return MappingRule(f"{label} Q{source_quantum}→Q{target_quantum}", op,
                       source_quantum, target_quantum)


def apply_rule(source: UOR, target: UOR, value: int, rule: MappingRule) -> int:
    """Image of `value` under the rule's operation."""
    if not source.contains(value):
        raise ValidationError(f"{value} is outside [0, {source.cycle}) for Q{source.quantum}")
    if rule.operation in (EMBED, IDENTITY):
        return value
    if rule.operation == PROJECT:
        return value & target.mask
    raise ValidationError(f"Unknown morphism operation: {rule.operation}")


def transform_id(source_iri: str, target_iri: str, kind: str, rule: MappingRule) -> str:
    payload = {
        "source": source_iri,
        "target": target_iri,
        "kind": kind,
        "rules": [rule.to_dict()],
    }
    return MORPHISM_URN + sha256_hex(canonical_json(payload))[:ID_LENGTH]


def _persist(record: TransformRecord, store: Optional[Store]) -> None:
    if store is None:
        return
    try:
        ingest_triples(store, {"@graph": [record.to_node()]}, MORPHISM_GRAPH)
    except StoreError as e:
        logger.warning("Morphism %s not persisted: %s", record.transform_id, e)


def cross_quantum_transform(
    value: int,
    source_quantum: int,
    target_quantum: int,
    store: Optional[Store] = None,
    settings: Optional[Settings] = None,
) -> Receipted[TransformRecord]:
    """
    Map `value` from Q`source_quantum` to Q`target_quantum`.

    Embedding or projection is chosen by direction. Both rings must pass
    self-verification; CoherenceError otherwise.
    """
    if source_quantum < 0 or target_quantum < 0:
        raise ValidationError("Quantum must be non-negative")
    source = UOR(quantum=source_quantum, settings=settings)
    target = source if target_quantum == source_quantum else UOR(quantum=target_quantum, settings=settings)
    coherent = source.require_coherent().verified and target.require_coherent().verified

    rule = mapping_rule(source_quantum, target_quantum)
    timestamp = utc_timestamp()

    def run() -> TransformRecord:
        image = apply_rule(source, target, value, rule)
        lossless = image == value
        if rule.operation == EMBED:
            kind = EMBEDDING
        else:
            kind = ISOMETRY if lossless else TRANSFORM
        source_iri, target_iri = source.iri(value), target.iri(image)
        return TransformRecord(
            transform_id=transform_id(source_iri, target_iri, kind, rule),
            kind=kind,
            rule=rule,
            source_value=value,
            target_value=image,
            source_iri=source_iri,
            target_iri=target_iri,
            lossless=lossless,
            timestamp=timestamp,
        )

    receipted = with_verified_receipt(
        "morphism",
        f"{rule.operation}:Q{source_quantum}->Q{target_quantum}",
        run,
        {"value": value, "sourceQuantum": source_quantum, "targetQuantum": target_quantum},
        coherence_verified=coherent,
        store=store,
        output_payload=lambda r: r.to_dict(),
    )
    record = receipted.result
    logger.info("%s %s: %s -> %s (%s)", record.kind, record.transform_id,
                record.source_iri, record.target_iri, "lossless" if record.lossless else "lossy")
    _persist(record, store)
    return receipted


def embed(value: int, source_quantum: int = 0, target_quantum: int = 1,
          store: Optional[Store] = None, settings: Optional[Settings] = None) -> Receipted[TransformRecord]:
    """Zero-pad `value` into a wider ring."""
    if source_quantum >= target_quantum:
        raise ValidationError(f"Embedding needs a wider target: Q{source_quantum}→Q{target_quantum}")
    return cross_quantum_transform(value, source_quantum, target_quantum, store, settings)


def project(value: int, source_quantum: int = 1, target_quantum: int = 0,
            store: Optional[Store] = None, settings: Optional[Settings] = None) -> Receipted[TransformRecord]:
    """Keep the low bytes of `value` in a narrower ring."""
    if source_quantum <= target_quantum:
        raise ValidationError(f"Projection needs a narrower target: Q{source_quantum}→Q{target_quantum}")
    return cross_quantum_transform(value, source_quantum, target_quantum, store, settings)

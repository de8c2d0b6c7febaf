"""
Self-verifying receipts.

Any deterministic operation can be wrapped: the input is hashed, the
operation runs, its output is hashed, then it runs AGAIN independently and
the second output is hashed too. The receipt is self-verified iff the two
output hashes agree.

The wrapped callable must be a pure function of its declared input. Wrap
the deterministic core of a side-effecting operation, not the operation.

Compute and persist are separate phases: persisting the receipt is
best-effort and a store failure never undoes the computed result.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from .canonical import canonical_bytes, sha256_hex
from .derivation import Derivation, DerivationEngine, TermLike, utc_timestamp
from .errors import StoreError
from .store import Store, ingest_receipt
from .terms import parse_term

logger = logging.getLogger(__name__)

RECEIPT_URN = "urn:uor:receipt:"
HASH_LENGTH = 32
ID_LENGTH = 24

T = TypeVar("T")


@dataclass(frozen=True)
class Receipt:
    receipt_id: str
    module_id: str
    operation: str
    input_hash: str
    output_hash: str
    recompute_hash: str
    self_verified: bool
    coherence_verified: bool
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "@type": "receipt:CanonicalReceipt",
            "receiptId": self.receipt_id,
            "moduleId": self.module_id,
            "operation": self.operation,
            "inputHash": self.input_hash,
            "outputHash": self.output_hash,
            "recomputeHash": self.recompute_hash,
            "selfVerified": self.self_verified,
            "coherenceVerified": self.coherence_verified,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class Receipted(Generic[T]):
    result: T
    receipt: Receipt


def _hash(payload: Any) -> str:
    return sha256_hex(canonical_bytes(payload))[:HASH_LENGTH]


def receipt_id(module_id: str, operation: str, input_hash: str, output_hash: str, timestamp: str) -> str:
    content = f"{module_id}:{operation}:{input_hash}:{output_hash}:{timestamp}"
    return RECEIPT_URN + sha256_hex(content)[:ID_LENGTH]


def persist_receipt(receipt: Receipt, store: Optional[Store]) -> bool:
    """Best-effort write. Returns whether the receipt was stored."""
    if store is None:
        return False
    try:
        ingest_receipt(store, receipt)
    except StoreError as e:
        logger.warning("Receipt %s not persisted: %s", receipt.receipt_id, e)
        return False
    return True


def with_verified_receipt(
    module_id: str,
    operation: str,
    fn: Callable[[], T],
    input_payload: Any,
    coherence_verified: bool = False,
    store: Optional[Store] = None,
    output_payload: Optional[Callable[[T], Any]] = None,
) -> Receipted[T]:
    """
    Run `fn` twice and issue a receipt comparing the two outputs.

    `input_payload` is what the input hash covers. `output_payload` maps a
    result to its hashable form; by default the result itself is hashed.
    """
    timestamp = utc_timestamp()
    as_payload = output_payload or (lambda r: r)

    input_hash = _hash(input_payload)
    result = fn()
    output_hash = _hash(as_payload(result))
    recomputed = fn()
    recompute_hash = _hash(as_payload(recomputed))

    receipt = Receipt(
        receipt_id=receipt_id(module_id, operation, input_hash, output_hash, timestamp),
        module_id=module_id,
        operation=operation,
        input_hash=input_hash,
        output_hash=output_hash,
        recompute_hash=recompute_hash,
        self_verified=recompute_hash == output_hash,
        coherence_verified=coherence_verified,
        timestamp=timestamp,
    )
    if not receipt.self_verified:
        logger.warning("Receipt %s: %s/%s did not reproduce its output",
                       receipt.receipt_id, module_id, operation)

    persist_receipt(receipt, store)
    return Receipted(result=result, receipt=receipt)


def _derivation_payload(d: Derivation) -> Dict[str, Any]:
    # Timestamp excluded: two runs of the same derivation must hash alike
    return {
        "derivationId": d.derivation_id,
        "resultValue": d.result_value,
        "resultIri": d.result_iri,
    }


def derivation_receipt(
    engine: DerivationEngine,
    term: TermLike,
    module_id: str = "derivation",
    store: Optional[Store] = None,
) -> Receipted[Derivation]:
    """Derive a term under a receipt."""
    coherence = engine.ring.require_coherent()
    term = parse_term(term) if isinstance(term, str) else term
    operation = term.canonical_serialize(engine.ring.width)
    return with_verified_receipt(
        module_id,
        operation,
        lambda: engine.derive(term),
        {"term": operation, "quantum": engine.ring.quantum},
        coherence_verified=coherence.verified,
        store=store,
        output_payload=_derivation_payload,
    )


@dataclass(frozen=True)
class ChainCheck:
    all_valid: bool
    results: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {"allValid": self.all_valid, "results": list(self.results)}


def verify_receipt_chain(receipts: Iterable[Receipt]) -> ChainCheck:
    """A receipt is consistent iff it self-verified on a coherent ring."""
    results = []
    for r in receipts:
        entry: Dict[str, Any] = {"receiptId": r.receipt_id, "valid": True}
        if not r.self_verified:
            entry.update(valid=False, reason="Self-verification failed")
        elif not r.coherence_verified:
            entry.update(valid=False, reason="Ring coherence not verified")
        results.append(entry)
    return ChainCheck(all_valid=all(e["valid"] for e in results), results=results)

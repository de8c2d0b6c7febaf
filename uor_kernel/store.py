"""
Persistent store interface and ingestion.

Five record kinds, each upserted by its primary key:

    datum        iri
    derivation   derivation_id
    certificate  certificate_id
    receipt      receipt_id
    triple       (subject, predicate, object, graph_iri)

Upserts are idempotent, so a retried ingestion after a partial failure
converges to the same state. No operation spans more than one kind.

`Store` is the abstract collaborator; `InMemoryStore` is the reference
implementation used by the CLI and the tests.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import StoreError, ValidationError
from .ring import UOR

logger = logging.getLogger(__name__)

DEFAULT_GRAPH = "urn:uor:default"

Row = Dict[str, Any]

PRIMARY_KEYS: Dict[str, Tuple[str, ...]] = {
    "datum": ("iri",),
    "derivation": ("derivation_id",),
    "certificate": ("certificate_id",),
    "receipt": ("receipt_id",),
    "triple": ("subject", "predicate", "object", "graph_iri"),
}


class Store(ABC):
    """
    Row store with upsert-by-primary-key semantics.

    Implementations provide `upsert`, `select` and `count`; everything else
    is built on those three. Failures surface as StoreError.
    """

    @abstractmethod
    def upsert(self, kind: str, rows: Iterable[Mapping[str, Any]]) -> int:
        """Insert or replace rows of one kind. Returns the number written."""

    @abstractmethod
    def select(self, kind: str, **where: Any) -> List[Row]:
        """Rows of one kind whose columns equal every `where` value."""

    @abstractmethod
    def count(self, kind: str) -> int:
        pass

    def _one(self, kind: str, **where: Any) -> Optional[Row]:
        rows = self.select(kind, **where)
        return rows[0] if rows else None

    # Reads by primary key

    def get_datum(self, iri: str) -> Optional[Row]:
        return self._one("datum", iri=iri)

    def get_derivation(self, derivation_id: str) -> Optional[Row]:
        return self._one("derivation", derivation_id=derivation_id)

    def get_certificate(self, certificate_id: str) -> Optional[Row]:
        return self._one("certificate", certificate_id=certificate_id)

    def get_receipt(self, receipt_id: str) -> Optional[Row]:
        return self._one("receipt", receipt_id=receipt_id)

    # Reads by indexed column

    def get_datum_by_value(self, value: int, quantum: int) -> Optional[Row]:
        return self._one("datum", value=value, quantum=quantum)

    def datums(self, quantum: int) -> List[Row]:
        return sorted(self.select("datum", quantum=quantum), key=lambda r: r["value"])

    def derivations_for(self, result_iri: str) -> List[Row]:
        return self.select("derivation", result_iri=result_iri)

    def certificates_for(self, iri: str) -> List[Row]:
        return self.select("certificate", certifies_iri=iri)

    def receipts_for_operation(self, operation: str) -> List[Row]:
        return self.select("receipt", operation=operation)

    def receipts_for_module(self, module_id: str) -> List[Row]:
        return self.select("receipt", module_id=module_id)

    def triples(self, **where: Any) -> List[Row]:
        return self.select("triple", **where)

    def counts(self) -> Dict[str, int]:
        return {kind: self.count(kind) for kind in PRIMARY_KEYS}


class InMemoryStore(Store):
    """Dict-backed store. Rows are copied in and out."""

    def __init__(self):
        self._tables: Dict[str, Dict[Tuple[Any, ...], Row]] = {k: {} for k in PRIMARY_KEYS}

    def _table(self, kind: str) -> Dict[Tuple[Any, ...], Row]:
        try:
            return self._tables[kind]
        except KeyError:
            raise StoreError(f"Unknown record kind: {kind}")

    def upsert(self, kind: str, rows: Iterable[Mapping[str, Any]]) -> int:
        table = self._table(kind)
        key_fields = PRIMARY_KEYS[kind]
        written = 0
        for row in rows:
            missing = [f for f in key_fields if row.get(f) is None]
            if missing:
                raise StoreError(f"{kind} row missing primary key field(s): {', '.join(missing)}")
            table[tuple(row[f] for f in key_fields)] = dict(row)
            written += 1
        return written

    def select(self, kind: str, **where: Any) -> List[Row]:
        return [dict(row) for row in self._table(kind).values()
                if all(row.get(k) == v for k, v in where.items())]

    def count(self, kind: str) -> int:
        return len(self._table(kind))


# ═══════════════════════════════════════════════════════════════════════════════
# INGESTION
# ═══════════════════════════════════════════════════════════════════════════════

def datum_row(ring: UOR, value: int) -> Row:
    """Full datum record: coordinates plus the IRIs of its unary neighbours."""
    if not ring.contains(value):
        raise ValidationError(f"{value} is outside [0, {ring.cycle})")
    b = ring.to_bytes(value)
    t = ring.triad(b)
    return {
        "iri": ring.iri(b),
        "quantum": ring.quantum,
        "value": value,
        "bytes": list(b),
        "stratum": list(t.stratum),
        "total_stratum": t.total_stratum,
        "spectrum": [list(s) for s in t.spectrum],
        "glyph": ring.glyph(b),
        "inverse_iri": ring.iri(ring.neg(b)),
        "not_iri": ring.iri(ring.bnot(b)),
        "succ_iri": ring.iri(ring.succ(b)),
        "pred_iri": ring.iri(ring.pred(b)),
    }


def ingest_datum(store: Store, ring: UOR, value: int) -> str:
    """Upsert one datum; returns its IRI."""
    row = datum_row(ring, value)
    store.upsert("datum", [row])
    return row["iri"]


def ingest_datum_batch(
    store: Store,
    ring: UOR,
    values: Iterable[int],
    on_progress: Optional[Callable[[int, int], None]] = None,
    batch_size: Optional[int] = None,
) -> int:
    """
    Ingest values in fixed-size chunks, sequentially.

    Chunks share no state, so a failed chunk can be retried on its own.
    """
    values = list(values)
    size = batch_size or ring.settings.batch_size
    if size <= 0:
        raise ValidationError(f"Batch size must be positive, got {size}")
    done = 0
    for start in range(0, len(values), size):
        chunk = values[start:start + size]
        store.upsert("datum", [datum_row(ring, v) for v in chunk])
        done += len(chunk)
        logger.debug("Ingested %d/%d datums (Q%d)", done, len(values), ring.quantum)
        if on_progress is not None:
            on_progress(done, len(values))
    return done


def ingest_derivation(store: Store, derivation) -> None:
    d = derivation
    store.upsert("derivation", [{
        "derivation_id": d.derivation_id,
        "result_iri": d.result_iri,
        "result_value": d.result_value,
        "canonical_term": d.canonical_term,
        "original_term": d.original_term,
        "epistemic_grade": d.epistemic_grade.value,
        "metrics": d.metrics.to_dict(),
        "quantum": d.quantum,
        "created_at": d.timestamp,
    }])


def ingest_certificate(store: Store, cert) -> None:
    store.upsert("certificate", [{
        "certificate_id": cert.certificate_id,
        "kind": cert.kind,
        "certifies_iri": cert.certifies,
        "derivation_id": cert.derivation_id,
        "valid": cert.valid,
        "cert_chain": list(cert.cert_chain),
        "issued_at": cert.issued_at,
    }])


def ingest_receipt(store: Store, receipt) -> None:
    r = receipt
    store.upsert("receipt", [{
        "receipt_id": r.receipt_id,
        "module_id": r.module_id,
        "operation": r.operation,
        "input_hash": r.input_hash,
        "output_hash": r.output_hash,
        "recompute_hash": r.recompute_hash,
        "self_verified": r.self_verified,
        "coherence_verified": r.coherence_verified,
        "created_at": r.timestamp,
    }])


def _object_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def extract_triples(doc: Mapping[str, Any], graph_iri: str = DEFAULT_GRAPH) -> List[Row]:
    """
    Decompose a graph document into subject/predicate/object rows.

    Every field but @id and @type yields one triple per scalar value or
    array element; each typed node also yields an rdf:type triple. Nested
    objects are not decomposed.
    """
    triples: List[Row] = []
    for node in doc.get("@graph", []):
        subject = node.get("@id")
        if subject is None:
            raise ValidationError("Graph node without @id")
        for key, value in node.items():
            if key in ("@id", "@type"):
                continue
            items = value if isinstance(value, list) else [value]
            for item in items:
                if isinstance(item, (str, int, float, bool)):
                    triples.append({"subject": subject, "predicate": key,
                                    "object": _object_text(item), "graph_iri": graph_iri})
        if node.get("@type"):
            triples.append({"subject": subject, "predicate": "rdf:type",
                            "object": node["@type"], "graph_iri": graph_iri})
    return triples


def ingest_triples(store: Store, doc: Mapping[str, Any], graph_iri: str = DEFAULT_GRAPH) -> int:
    """Returns the number of triples extracted and upserted."""
    triples = extract_triples(doc, graph_iri)
    store.upsert("triple", triples)
    return len(triples)

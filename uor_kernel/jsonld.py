"""
Canonical graph documents: `@context` plus a `@graph` of typed nodes.

Every node carries `@id` and `@type`; the remaining fields are namespaced
scalars or arrays so the document decomposes cleanly into triples.
"""

import json
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from .certificates import Certificate
from .derivation import Derivation, utc_timestamp
from .errors import ClosureError, ValidationError
from .partition import ClosureMode, classify
from .receipts import Receipt
from .ring import UOR, Operand
from .triad import stratum_density, stratum_level

NAMESPACES = ("schema", "op", "partition", "proof", "derivation", "cert", "receipt", "state", "morphism")

CLOSURE_OPS = {"not": "bnot", "inverse": "neg"}


def context(ring: UOR) -> Dict[str, Any]:
    base = ring.settings.base_iri
    root = base.rsplit("/u/", 1)[0] + "/" if "/u/" in base else base
    ctx: Dict[str, Any] = {
        "@base": base,
        "@vocab": base,
        "xsd": "http://www.w3.org/2001/XMLSchema#",
        "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
        "prov": "http://www.w3.org/ns/prov#",
        "u": base,
    }
    for ns in NAMESPACES:
        ctx[ns] = f"{root}{ns}/"
    ctx.update({
        "schema:value": {"@type": "xsd:nonNegativeInteger"},
        "schema:quantum": {"@type": "xsd:nonNegativeInteger"},
        "schema:totalStratum": {"@type": "xsd:nonNegativeInteger"},
        "basis": {"@type": "@id", "@container": "@list"},
        "succ": {"@type": "@id"},
        "pred": {"@type": "@id"},
        "inverse": {"@type": "@id"},
        "not": {"@type": "@id"},
        "derivation:derivedBy": {"@type": "@id", "@container": "@set"},
    })
    return ctx


# ═══════════════════════════════════════════════════════════════════════════════
# NODES
# ═══════════════════════════════════════════════════════════════════════════════

def datum_node(ring: UOR, n: Operand, derivation_ids: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    b = ring.normalize(n)
    t = ring.triad(b)
    value = ring.from_bytes(b)

    basis = []
    for pos, byte_spectrum in enumerate(t.spectrum):
        for bit in byte_spectrum:
            basis.append(ring.iri(tuple((1 << bit) if i == pos else 0 for i in range(ring.width))))

    node: Dict[str, Any] = {
        "@id": ring.iri(b),
        "@type": "schema:Datum",
        "schema:value": value,
        "schema:quantum": ring.quantum,
        "schema:bytes": list(b),
        "schema:stratum": list(t.stratum),
        "schema:totalStratum": t.total_stratum,
        "schema:stratumLevel": stratum_level(t.total_stratum, ring.bits),
        "schema:stratumDensity": round(stratum_density(t.total_stratum, ring.bits), 2),
        "schema:glyph": ring.glyph(b),
        "partition:component": classify(value, ring.bits).component.value,
        "inverse": ring.iri(ring.neg(b)),
        "not": ring.iri(ring.bnot(b)),
        "succ": ring.iri(ring.succ(b)),
        "pred": ring.iri(ring.pred(b)),
        "basis": basis,
    }
    if derivation_ids:
        node["derivation:derivedBy"] = list(derivation_ids)
    return node


def derivation_node(d: Derivation) -> Dict[str, Any]:
    return {
        "@id": d.derivation_id,
        "@type": "derivation:Record",
        "derivation:originalTerm": d.original_term,
        "derivation:canonicalTerm": d.canonical_term,
        "derivation:resultValue": d.result_value,
        "derivation:resultIri": d.result_iri,
        "derivation:epistemicGrade": d.epistemic_grade.value,
        "derivation:timestamp": d.timestamp,
        "derivation:originalComplexity": d.metrics.original_complexity,
        "derivation:canonicalComplexity": d.metrics.canonical_complexity,
        "derivation:reductionRatio": d.metrics.reduction_ratio,
        "prov:wasGeneratedBy": f"urn:uor:proof:coherence:Q{d.quantum}",
    }


def certificate_node(cert: Certificate) -> Dict[str, Any]:
    node: Dict[str, Any] = {
        "@id": cert.certificate_id,
        "@type": f"cert:{cert.kind}Certificate",
        "cert:certifies": cert.certifies,
        "cert:valid": cert.valid,
        "cert:issuedAt": cert.issued_at,
        "cert:certChain": list(cert.cert_chain),
    }
    if cert.derivation_id is not None:
        node["cert:derivationId"] = cert.derivation_id
    for key, value in cert.evidence.items():
        node[f"cert:{key}"] = value
    return node


def receipt_node(r: Receipt) -> Dict[str, Any]:
    return {
        "@id": r.receipt_id,
        "@type": "receipt:CanonicalReceipt",
        "receipt:moduleId": r.module_id,
        "receipt:operation": r.operation,
        "receipt:inputHash": r.input_hash,
        "receipt:outputHash": r.output_hash,
        "receipt:recomputeHash": r.recompute_hash,
        "receipt:selfVerified": r.self_verified,
        "receipt:coherenceVerified": r.coherence_verified,
        "receipt:timestamp": r.timestamp,
    }


def coherence_proof(
    ring: UOR,
    datum_count: int = 0,
    closure_ops: Sequence[str] = (),
    closure_mode: ClosureMode = ClosureMode.ONE_STEP,
    not_closed_under: Sequence[str] = (),
) -> Dict[str, Any]:
    result = ring.require_coherent()
    return {
        "@id": f"urn:uor:proof:coherence:Q{ring.quantum}",
        "@type": "proof:CoherenceProof",
        "proof:quantum": ring.quantum,
        "proof:width": ring.width,
        "proof:bits": ring.bits,
        "proof:cycle": ring.cycle if ring.cycle <= 2 ** 32 else f"2^{ring.bits}",
        "proof:signature": list(UOR.SIGNATURE),
        "proof:primitiveInvolutions": list(UOR.INVOLUTIONS),
        "proof:derivedOperations": list(UOR.DERIVED_OPS),
        "proof:verified": result.verified,
        "proof:exhaustive": result.exhaustive,
        "proof:checked": result.checked,
        "proof:failures": list(result.failures),
        "proof:criticalIdentity": "neg(bnot(x)) = succ(x)",
        "proof:closureMode": closure_mode.value,
        "proof:closureOps": sorted(closure_ops),
        "proof:notClosedUnder": sorted(not_closed_under),
        "proof:datumCount": datum_count,
        "proof:timestamp": utc_timestamp(),
    }


# ═══════════════════════════════════════════════════════════════════════════════
# DOCUMENT
# ═══════════════════════════════════════════════════════════════════════════════

def _close(ring: UOR, seeds: Set[int], ops: Sequence[str], mode: ClosureMode) -> Set[int]:
    values = set(seeds)
    frontier = set(seeds)
    while frontier:
        images = {ring.compute(CLOSURE_OPS[op], v) for v in frontier for op in ops}
        frontier = images - values
        values |= frontier
        if mode == ClosureMode.ONE_STEP:
            break
    return values


def emit_graph(
    ring: UOR,
    values: Optional[Iterable[int]] = None,
    closure_ops: Sequence[str] = (),
    closure_mode: ClosureMode = ClosureMode.ONE_STEP,
    derivations: Sequence[Derivation] = (),
    certificates: Sequence[Certificate] = (),
    receipts: Sequence[Receipt] = (),
    allow_full_closure: bool = False,
) -> Dict[str, Any]:
    """
    Emit a graph document for a set of datums and any attached records.

    values: datums to emit. Default is the whole ring when it is within the
            enumeration ceiling, else the boundary-plus-sample set.
    closure_ops: subset of {"not", "inverse"} to close the value set under,
                 once (oneStep) or to a fixed point (fixedPoint, graphClosed).
    """
    for op in closure_ops:
        if op not in CLOSURE_OPS:
            raise ValidationError(f"closure_ops must be a subset of {sorted(CLOSURE_OPS)}, got {op!r}")

    both = set(closure_ops) == set(CLOSURE_OPS)
    ceiling = ring.settings.enumeration_ceiling
    if both and closure_mode != ClosureMode.ONE_STEP and ring.cycle > ceiling and not allow_full_closure:
        raise ClosureError(
            f"Closure under both involutions requires full ring enumeration "
            f"({ring.cycle:,} elements). Pass allow_full_closure=True to proceed."
        )

    if values is None:
        seeds = set(ring.verification_values()[0])
    else:
        seeds = set()
        for v in values:
            if not ring.contains(v):
                raise ValidationError(f"{v} is outside [0, {ring.cycle})")
            seeds.add(v)
    # Every attached derivation's result is emitted so resultIri resolves
    for d in derivations:
        if d.quantum != ring.quantum:
            raise ValidationError(f"Derivation {d.derivation_id} is Q{d.quantum}, graph is Q{ring.quantum}")
        seeds.add(d.result_value)
    emitted = _close(ring, seeds, closure_ops, closure_mode) if closure_ops else seeds

    not_closed_under = [
        op for op in closure_ops
        if any(ring.compute(CLOSURE_OPS[op], v) not in emitted for v in emitted)
    ]

    derived_by: Dict[int, List[str]] = {}
    for d in derivations:
        derived_by.setdefault(d.result_value, []).append(d.derivation_id)

    graph: List[Dict[str, Any]] = [
        coherence_proof(ring, len(emitted), closure_ops, closure_mode, not_closed_under)
    ]
    graph.extend(datum_node(ring, v, derived_by.get(v)) for v in sorted(emitted))
    graph.extend(derivation_node(d) for d in derivations)
    graph.extend(certificate_node(c) for c in certificates)
    graph.extend(receipt_node(r) for r in receipts)
    return {"@context": context(ring), "@graph": graph}


def emit_json(ring: UOR, indent: int = 2, **kwargs) -> str:
    return json.dumps(emit_graph(ring, **kwargs), indent=indent, ensure_ascii=False)


def write(ring: UOR, path: str, **kwargs) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(emit_json(ring, **kwargs))

"""
Tests for graph document emission
"""

import json

import pytest

from uor_kernel.certificates import CertificateIssuer
from uor_kernel.config import Settings
from uor_kernel.derivation import derive
from uor_kernel.errors import ClosureError, CoherenceError, ValidationError
from uor_kernel.jsonld import context, datum_node, emit_graph, emit_json, write
from uor_kernel.partition import ClosureMode
from uor_kernel.receipts import with_verified_receipt
from uor_kernel.ring import UOR
from uor_kernel.store import ingest_triples


def datum_values(doc):
    return sorted(n["schema:value"] for n in doc["@graph"] if n["@type"] == "schema:Datum")


class TestContext:
    def test_namespaces(self, q0):
        ctx = context(q0)
        assert ctx["@base"] == "https://uor.foundation/u/"
        assert ctx["derivation"] == "https://uor.foundation/derivation/"
        assert ctx["prov"] == "http://www.w3.org/ns/prov#"
        assert ctx["succ"] == {"@type": "@id"}


class TestDatumNode:
    def test_fields(self, q0):
        node = datum_node(q0, 3)
        assert node["@id"] == q0.iri(3)
        assert node["partition:component"] == "partition:IrreducibleSet"
        assert node["basis"] == [q0.iri(1), q0.iri(2)]
        assert node["schema:stratumDensity"] == 25.0
        assert node["not"] == q0.iri(252)
        assert "derivation:derivedBy" not in node

    def test_multibyte_basis(self, q1):
        assert datum_node(q1, 0x0101)["basis"] == [q1.iri(0x0100), q1.iri(0x0001)]


class TestEmitGraph:
    def test_proof_node_first(self, q0):
        doc = emit_graph(q0, values=[3])
        proof = doc["@graph"][0]
        assert proof["@type"] == "proof:CoherenceProof"
        assert proof["@id"] == "urn:uor:proof:coherence:Q0"
        assert proof["proof:verified"] is True
        assert proof["proof:datumCount"] == 1
        assert datum_values(doc) == [3]

    def test_default_is_whole_ring(self, q0):
        assert len(datum_values(emit_graph(q0))) == 256

    def test_one_step_closure(self, q0):
        doc = emit_graph(q0, values=[3], closure_ops=["not"])
        assert datum_values(doc) == [3, 252]
        assert doc["@graph"][0]["proof:notClosedUnder"] == []

    def test_one_step_both_reports_open_ops(self, q0):
        doc = emit_graph(q0, values=[3], closure_ops=["not", "inverse"])
        assert datum_values(doc) == [3, 252, 253]
        assert doc["@graph"][0]["proof:notClosedUnder"] == ["inverse", "not"]

    def test_fixed_point_both_reaches_whole_ring(self, q0):
        doc = emit_graph(q0, values=[3], closure_ops=["not", "inverse"],
                         closure_mode=ClosureMode.FIXED_POINT)
        assert len(datum_values(doc)) == 256

    def test_full_closure_guard(self):
        ring = UOR(1, settings=Settings(enumeration_ceiling=256))
        with pytest.raises(ClosureError):
            emit_graph(ring, values=[3], closure_ops=["not", "inverse"],
                       closure_mode=ClosureMode.GRAPH_CLOSED)

    def test_single_op_beyond_ceiling_is_allowed(self):
        ring = UOR(1, settings=Settings(enumeration_ceiling=256))
        doc = emit_graph(ring, values=[3], closure_ops=["inverse"],
                         closure_mode=ClosureMode.FIXED_POINT)
        assert datum_values(doc) == [3, 65533]

    def test_invalid_inputs(self, q0):
        with pytest.raises(ValidationError):
            emit_graph(q0, values=[3], closure_ops=["succ"])
        with pytest.raises(ValidationError):
            emit_graph(q0, values=[256])

    def test_attached_records(self, q0):
        d = derive(q0, "xor(1, 2)")
        cert = CertificateIssuer(q0).issue_involution("neg")
        receipt = with_verified_receipt("m", "op", lambda: 1, {}).receipt
        doc = emit_graph(q0, values=[3], derivations=[d], certificates=[cert], receipts=[receipt])
        types = [n["@type"] for n in doc["@graph"]]
        assert types == ["proof:CoherenceProof", "schema:Datum", "derivation:Record",
                         "cert:InvolutionCertificate", "receipt:CanonicalReceipt"]
        datum = doc["@graph"][1]
        assert datum["derivation:derivedBy"] == [d.derivation_id]
        assert doc["@graph"][2]["prov:wasGeneratedBy"] == "urn:uor:proof:coherence:Q0"

    def test_derivation_results_are_emitted(self, q0):
        d = derive(q0, "xor(0x55, 0xaa)")
        doc = emit_graph(q0, values=[1, 2], derivations=[d])
        assert datum_values(doc) == [1, 2, 255]
        ids = {n["@id"] for n in doc["@graph"]}
        assert d.result_iri in ids
        datum = next(n for n in doc["@graph"] if n["@id"] == d.result_iri)
        assert datum["derivation:derivedBy"] == [d.derivation_id]

    def test_derivation_from_another_quantum(self, q0, q1):
        with pytest.raises(ValidationError):
            emit_graph(q0, values=[1], derivations=[derive(q1, "xor(0x100, 1)")])

    def test_incoherent_ring(self, broken_ring):
        with pytest.raises(CoherenceError):
            emit_graph(broken_ring, values=[1])


class TestSerialization:
    def test_emit_json_keeps_glyphs(self, q0):
        text = emit_json(q0, values=[0x55])
        assert q0.glyph(0x55) in text
        assert json.loads(text)["@graph"][1]["schema:value"] == 0x55

    def test_write(self, q0, tmp_path):
        path = tmp_path / "graph.jsonld"
        write(q0, str(path), values=[1, 2])
        doc = json.loads(path.read_text(encoding="utf-8"))
        assert datum_values(doc) == [1, 2]

    def test_triples_from_document(self, q0, store):
        doc = emit_graph(q0, values=[3])
        assert ingest_triples(store, doc) > 0
        rows = store.triples(subject=q0.iri(3), predicate="rdf:type")
        assert rows[0]["object"] == "schema:Datum"
        basis = store.triples(subject=q0.iri(3), predicate="basis")
        assert {r["object"] for r in basis} == {q0.iri(1), q0.iri(2)}

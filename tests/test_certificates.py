"""
Tests for certificate issuance and verification
"""

from dataclasses import replace

import pytest

from uor_kernel.certificates import (Certificate, CertificateIssuer, hamming_distance,
                                     ring_distance)
from uor_kernel.errors import (BLOCKED, DERIVATION_MISMATCH, NOT_ISOMETRY, OUT_OF_RANGE,
                               CoherenceError, Rejection, ValidationError)

PAIRS = [(0, 1), (2, 5), (10, 200)]


@pytest.fixture
def issuer(q0, engine):
    return CertificateIssuer(q0, engine)


class TestDistances:
    def test_ring_distance_wraps(self):
        assert ring_distance(0, 255, 256) == 1
        assert ring_distance(10, 200, 256) == 66

    def test_hamming(self):
        assert hamming_distance(0b1010, 0b0101) == 4
        assert hamming_distance(7, 7) == 0


class TestTransform:
    def test_valid_replay(self, issuer, engine):
        d = engine.derive("xor(0x55, 0xaa)")
        cert = issuer.issue_transform(d, "xor(0xaa, 0x55)", parent_chain=["urn:parent"])
        assert isinstance(cert, Certificate)
        assert cert.valid
        assert cert.certificate_id.startswith("urn:uor:cert:b")
        assert cert.certifies == d.result_iri
        assert cert.cert_chain == ("urn:parent", d.derivation_id)
        assert cert.to_dict()["@type"] == "cert:TransformCertificate"

    def test_id_is_deterministic(self, issuer, engine):
        d = engine.derive("neg(7)")
        first = issuer.issue_transform(d, "neg(7)")
        second = issuer.issue_transform(d, "neg(7)")
        assert first.certificate_id == second.certificate_id

    def test_mismatch_is_rejected(self, issuer, engine):
        d = engine.derive("xor(1, 2)")
        outcome = issuer.issue_transform(d, "xor(1, 4)")
        assert isinstance(outcome, Rejection)
        assert outcome.reason == DERIVATION_MISMATCH
        assert not outcome.valid
        assert outcome.to_dict()["error"] == DERIVATION_MISMATCH

    def test_forged_result_is_rejected(self, issuer, engine, q0):
        d = replace(engine.derive("xor(0x55, 0xaa)"), result_value=7, result_iri=q0.iri(7))
        outcome = issuer.issue_transform(d, "xor(0x55, 0xaa)")
        assert isinstance(outcome, Rejection)
        assert outcome.reason == DERIVATION_MISMATCH
        assert outcome.evidence["expected"]["resultIri"] == q0.iri(7)
        assert outcome.evidence["actual"]["resultIri"] == q0.iri(0xFF)


class TestIsometry:
    def test_same_class_is_blocked(self, issuer):
        outcome = issuer.issue_isometry(42, 42, PAIRS)
        assert isinstance(outcome, Rejection)
        assert outcome.reason == BLOCKED
        assert outcome.evidence["sourceClass"] == outcome.evidence["targetClass"]

    def test_ring_shift_is_certified(self, issuer, q0):
        cert = issuer.issue_isometry(42, 43, PAIRS)
        assert isinstance(cert, Certificate)
        assert cert.certifies == q0.iri(43)
        assert cert.evidence["shift"] == 1
        assert cert.evidence["sourceClass"] == "partition:ReducibleSet"
        assert cert.evidence["targetClass"] == "partition:IrreducibleSet"
        assert all(p["preserved"] for p in cert.evidence["pairs"])

    def test_hamming_failure_lists_failing_pairs(self, issuer):
        outcome = issuer.issue_isometry(42, 43, PAIRS, metric="hamming")
        assert isinstance(outcome, Rejection)
        assert outcome.reason == NOT_ISOMETRY
        assert outcome.evidence["failingPairs"] == [[0, 1], [2, 5]]
        assert len(outcome.evidence["pairs"]) == 3

    @pytest.mark.parametrize("count", [2, 17])
    def test_pair_count_bounds(self, issuer, count):
        pairs = [(i, i + 1) for i in range(count)]
        with pytest.raises(ValidationError):
            issuer.issue_isometry(42, 43, pairs)

    def test_malformed_pair(self, issuer):
        with pytest.raises(ValidationError):
            issuer.issue_isometry(42, 43, [(0, 1), (2, 3), (4,)])

    def test_unknown_metric(self, issuer):
        with pytest.raises(ValidationError):
            issuer.issue_isometry(42, 43, PAIRS, metric="euclid")

    def test_out_of_range(self, issuer):
        outcome = issuer.issue_isometry(42, 300, PAIRS)
        assert isinstance(outcome, Rejection)
        assert outcome.reason == OUT_OF_RANGE
        assert outcome.evidence["values"] == [300]


class TestInvolution:
    @pytest.mark.parametrize("op", ["neg", "bnot"])
    def test_primitive_involutions(self, issuer, op):
        cert = issuer.issue_involution(op)
        assert isinstance(cert, Certificate)
        assert cert.evidence["checked"] == 256
        assert cert.evidence["exhaustive"] is True
        assert cert.certifies.endswith(f"op/{op}")

    def test_non_involution_is_invalid_input(self, issuer):
        with pytest.raises(ValidationError):
            issuer.issue_involution("succ")


class TestVerifyCertificate:
    def test_transform(self, issuer, engine):
        d = engine.derive("and(0xf0, 0x3c)")
        cert = issuer.issue_transform(d, "and(0xf0, 0x3c)")
        assert issuer.verify_certificate(cert, "and(0x3c, 0xf0)", d)

    def test_transform_with_forged_result_fails(self, issuer, engine, q0):
        d = engine.derive("and(0xf0, 0x3c)")
        cert = issuer.issue_transform(d, "and(0xf0, 0x3c)")
        forged = replace(d, result_value=1, result_iri=q0.iri(1))
        assert not issuer.verify_certificate(replace(cert, certifies=q0.iri(1)), "and(0xf0, 0x3c)", forged)
        assert not issuer.verify_certificate(cert, "and(0xf0, 0x3c)", forged)

    def test_transform_needs_derivation(self, issuer, engine):
        d = engine.derive("1")
        cert = issuer.issue_transform(d, "1")
        with pytest.raises(ValidationError):
            issuer.verify_certificate(cert)

    def test_isometry_and_involution_reissue(self, issuer):
        assert issuer.verify_certificate(issuer.issue_isometry(42, 43, PAIRS))
        assert issuer.verify_certificate(issuer.issue_involution("bnot"))

    def test_tampered_evidence_fails(self, issuer):
        cert = issuer.issue_isometry(42, 43, PAIRS)
        evidence = dict(cert.evidence, shift=5, pairs=[dict(p) for p in cert.evidence["pairs"]])
        evidence["pairs"][0]["pair"] = [3, 4]
        forged = Certificate(cert.certificate_id, cert.kind, cert.certifies, True,
                             cert.issued_at, evidence=evidence)
        assert not issuer.verify_certificate(forged)


class TestIncoherentRing:
    def test_refuses_to_issue(self, broken_ring):
        with pytest.raises(CoherenceError):
            CertificateIssuer(broken_ring).issue_involution("neg")

"""
Tests for term parsing, canonicalization and evaluation
"""

import pytest

from uor_kernel.errors import ValidationError
from uor_kernel.ring import UOR
from uor_kernel.terms import Term, TermAlgebra, const, make_term, parse_term


@pytest.fixture
def algebra(q0):
    return TermAlgebra(q0)


def canon(algebra, text):
    return algebra.canonicalize(parse_term(text)).canonical_serialize(algebra.ring.width)


class TestParser:
    def test_nested_unary(self):
        t = parse_term("neg(bnot(42))")
        assert t == Term("neg", (Term("bnot", (42,)),))

    def test_hex_and_nary(self):
        t = parse_term("xor(0x55, 0xAA, 3)")
        assert t.operation == "xor"
        assert t.operands == (0x55, 0xAA, 3)

    def test_bare_constant(self):
        assert parse_term(" 0x2a ").is_leaf()
        assert parse_term("42").operands == (42,)

    @pytest.mark.parametrize("text", [
        "", "x", "foo(1)", "neg(1, 2)", "xor(1)", "neg(1", "neg(1))", "neg(-1)", "neg 1",
    ])
    def test_rejects(self, text):
        with pytest.raises(ValidationError):
            parse_term(text)

    def test_make_term_validates(self):
        with pytest.raises(ValidationError):
            make_term("rotate", 1)
        with pytest.raises(ValidationError):
            make_term("succ", 1, 2)
        assert make_term(None, 7) == const(7)


class TestMetrics:
    def test_nested(self):
        m = parse_term("neg(bnot(42))").metrics()
        assert m.depth == 2
        assert m.node_count == 3
        assert dict(m.op_counts) == {"bnot": 1, "neg": 1}

    def test_leaf(self):
        m = const(1).metrics()
        assert (m.depth, m.node_count, m.op_counts) == (0, 1, ())

    def test_to_dict(self):
        d = parse_term("xor(1, and(2, 3))").metrics().to_dict()
        assert d == {"depth": 2, "nodeCount": 5, "opCounts": {"and": 1, "xor": 1}}


class TestCanonicalize:
    def test_commutative_order(self, algebra):
        assert canon(algebra, "xor(0xaa, 0x55)") == canon(algebra, "xor(0x55, 0xaa)") == "xor(0x55,0xaa)"

    def test_identity_elimination(self, algebra):
        assert canon(algebra, "xor(0x55, 0, 0xAA)") == "xor(0x55,0xaa)"
        assert canon(algebra, "and(7, 0xff)") == "0x07"
        assert canon(algebra, "or(0, 9)") == "0x09"

    def test_annihilators(self, algebra):
        assert canon(algebra, "and(7, 0)") == "0x00"
        assert canon(algebra, "or(7, 0xff)") == "0xff"

    def test_self_cancellation(self, algebra):
        assert canon(algebra, "xor(3, 3)") == "0x00"
        assert canon(algebra, "xor(3, 5, 3)") == "0x05"
        assert canon(algebra, "xor(3, 3, 3)") == "0x03"

    def test_idempotence(self, algebra):
        assert canon(algebra, "and(6, 6, 12)") == "and(0x06,0x0c)"
        assert canon(algebra, "or(neg(1), neg(1))") == "neg(0x01)"

    def test_involution_cancellation(self, algebra):
        assert canon(algebra, "neg(neg(5))") == "0x05"
        assert canon(algebra, "bnot(bnot(neg(2)))") == "neg(0x02)"

    def test_derived_expansion(self, algebra):
        assert canon(algebra, "succ(7)") == "neg(bnot(0x07))"
        assert canon(algebra, "pred(7)") == "bnot(neg(0x07))"

    def test_flattening(self, algebra):
        assert canon(algebra, "xor(1, xor(2, 3))") == "xor(0x01,0x02,0x03)"

    def test_constant_reduction(self, algebra):
        assert canon(algebra, "xor(256, 5)") == "0x05"

    def test_constants_sort_before_terms(self, algebra):
        assert canon(algebra, "xor(neg(1), 2)") == "xor(0x02,neg(0x01))"

    def test_idempotent(self, algebra):
        once = algebra.canonicalize(parse_term("xor(succ(3), 0, and(0xff, 4), 4)"))
        assert algebra.canonicalize(once) == once

    @pytest.mark.parametrize("text, expected", [
        ("neg(xor(neg(5), 0))", "0x05"),
        ("bnot(and(bnot(0x10), 0xff))", "0x10"),
        ("neg(or(neg(xor(1, 2)), 0))", "xor(0x01,0x02)"),
    ])
    def test_involution_exposed_by_reduction(self, algebra, text, expected):
        once = algebra.canonicalize(parse_term(text))
        assert once.canonical_serialize(1) == expected
        assert algebra.canonicalize(once) == once

    def test_fixed_width_in_wider_ring(self):
        algebra = TermAlgebra(UOR(quantum=1))
        assert canon(algebra, "xor(0xaa, 0x55)") == "xor(0x0055,0x00aa)"


class TestEvaluate:
    def test_xor(self, algebra):
        assert algebra.evaluate(parse_term("xor(0x55, 0xaa)")) == (0xFF,)

    def test_critical_identity(self, algebra):
        assert algebra.evaluate(parse_term("neg(bnot(42))")) == (43,)
        assert algebra.evaluate(parse_term("succ(42)")) == (43,)

    def test_canonical_form_preserves_value(self, algebra):
        for text in ("xor(3, 5, 3)", "or(7, 0xff)", "pred(succ(9))", "and(0x0f, bnot(0x3c))"):
            t = parse_term(text)
            assert algebra.evaluate(algebra.canonicalize(t)) == algebra.evaluate(t)

    def test_raw_int(self, algebra):
        assert algebra.evaluate(300) == (44,)

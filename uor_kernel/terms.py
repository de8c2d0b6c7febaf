"""
Terms: syntax trees over the ring signature, and their canonical forms.

A term is syntax; evaluation produces a datum. A term is never stored as a
datum, and two different terms may denote the same one.

Canonicalization normalizes terms for deterministic derivation IDs:

  1. Involution cancellation: f(f(x)) -> x for f in {neg, bnot}
  2. Derived expansion: succ(x) -> neg(bnot(x)), pred(x) -> bnot(neg(x))
  3. Constant reduction: integers reduced mod 2^bits
  4. AC flatten+sort: xor/and/or flattened to n-ary, operands sorted
  5. Identity elimination: x xor 0 -> x, x and mask -> x, x or 0 -> x
  6. Annihilator reduction: x and 0 -> 0, x or mask -> mask
  7. Self-cancellation: x xor x -> 0
  8. Idempotence: x and x -> x, x or x -> x

NOT normalized (would require semantic equality testing): absorption,
distributivity, general equivalence under the full equational theory.
Rewriting only ever shrinks or expands derived ops once, so it terminates.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import ValidationError
from .ring import UOR, ByteTuple

UNARY = ("neg", "bnot", "succ", "pred")
AC_OPS = ("xor", "and", "or")
OPERATIONS = frozenset(UNARY + AC_OPS)


@dataclass(frozen=True)
class TermMetrics:
    """
    Structural metrics for a term (syntax tree).

    These are properties of the term itself, independent of
    which datum it evaluates to.
    """
    depth: int
    node_count: int
    op_counts: Tuple[Tuple[str, int], ...]

    @classmethod
    def from_op_dict(cls, depth: int, node_count: int, op_counts: Dict[str, int]) -> 'TermMetrics':
        return cls(depth=depth, node_count=node_count, op_counts=tuple(sorted(op_counts.items())))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "depth": self.depth,
            "nodeCount": self.node_count,
            "opCounts": dict(self.op_counts),
        }


@dataclass
class Term:
    """
    A term in the algebra.

    A leaf has operation None and a single int operand. Operands of an
    operation node are child terms or raw ints.
    """
    operation: Optional[str]
    operands: Tuple[Union['Term', int], ...]

    def is_leaf(self) -> bool:
        return self.operation is None

    def metrics(self) -> TermMetrics:
        """Compute structural metrics for this term."""
        if self.is_leaf():
            return TermMetrics.from_op_dict(depth=0, node_count=1, op_counts={})

        op_counts: Dict[str, int] = {self.operation: 1}
        depth = 0
        nodes = 1
        for operand in self.operands:
            if isinstance(operand, Term):
                child = operand.metrics()
                depth = max(depth, child.depth)
                nodes += child.node_count
                for op, count in child.op_counts:
                    op_counts[op] = op_counts.get(op, 0) + count
            else:
                nodes += 1
        return TermMetrics.from_op_dict(depth=1 + depth, node_count=nodes, op_counts=op_counts)

    def canonical_serialize(self, width: int) -> str:
        """
        Deterministic serialization for hashing.

        Format: op(arg1,arg2,...) with constants as fixed-width hex.
        """
        if self.is_leaf():
            return _hex(self.operands[0], width)
        args = ",".join(
            op.canonical_serialize(width) if isinstance(op, Term) else _hex(op, width)
            for op in self.operands
        )
        return f"{self.operation}({args})"

    def __str__(self) -> str:
        if self.is_leaf():
            return f"0x{self.operands[0]:x}"
        args = ", ".join(str(op) if isinstance(op, Term) else f"0x{op:x}" for op in self.operands)
        return f"{self.operation}({args})"


def _hex(value: Union['Term', int], width: int) -> str:
    if isinstance(value, Term):
        return value.canonical_serialize(width)
    return f"0x{value & ((1 << (width * 8)) - 1):0{width * 2}x}"


def const(value: int) -> Term:
    return Term(None, (value,))


def make_term(operation: Optional[str], *operands: Union[Term, int]) -> Term:
    """Construct a term from operation and operands."""
    if operation is None:
        if len(operands) != 1 or not isinstance(operands[0], int):
            raise ValidationError("A constant term takes exactly one integer")
        return const(operands[0])
    if operation not in OPERATIONS:
        raise ValidationError(f"Unknown operation: {operation}")
    if operation in UNARY and len(operands) != 1:
        raise ValidationError(f"{operation} takes exactly one operand, got {len(operands)}")
    if operation in AC_OPS and len(operands) < 2:
        raise ValidationError(f"{operation} takes at least two operands, got {len(operands)}")
    return Term(operation, tuple(operands))


# ═══════════════════════════════════════════════════════════════════════════════
# PARSER
# ═══════════════════════════════════════════════════════════════════════════════

_TOKEN = re.compile(r"\s*(?:(0[xX][0-9a-fA-F]+)|(\d+)|([A-Za-z_]\w*)|(.))")


def _tokenize(text: str) -> List[Tuple[str, Any]]:
    tokens: List[Tuple[str, Any]] = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        hex_lit, dec_lit, ident, punct = m.groups()
        if hex_lit:
            tokens.append(("num", int(hex_lit, 16)))
        elif dec_lit:
            tokens.append(("num", int(dec_lit)))
        elif ident:
            tokens.append(("ident", ident))
        elif punct in "(),":
            tokens.append((punct, punct))
        elif punct is not None and not punct.isspace():
            raise ValidationError(f"Unexpected character {punct!r} at position {m.start(4)}")
        pos = m.end()
    return tokens


def parse_term(text: str) -> Term:
    """
    Parse `neg(bnot(42))`, `xor(0x55, 0xAA, 3)` and the like into a Term.

    Decimal and 0x-hex literals; unary neg/bnot/succ/pred; n-ary xor/and/or.
    """
    tokens = _tokenize(text)
    if not tokens:
        raise ValidationError("Empty term")
    pos = 0

    def expect(kind: str) -> None:
        nonlocal pos
        if pos >= len(tokens) or tokens[pos][0] != kind:
            found = tokens[pos][1] if pos < len(tokens) else "end of input"
            raise ValidationError(f"Expected {kind!r}, found {found!r}")
        pos += 1

    def expr() -> Union[Term, int]:
        nonlocal pos
        if pos >= len(tokens):
            raise ValidationError("Unexpected end of input")
        kind, value = tokens[pos]
        if kind == "num":
            pos += 1
            return value
        if kind != "ident":
            raise ValidationError(f"Unexpected {value!r}")
        if value not in OPERATIONS:
            raise ValidationError(f"Unknown operation or unbound name: {value}")
        pos += 1
        expect("(")
        args = [expr()]
        while pos < len(tokens) and tokens[pos][0] == ",":
            pos += 1
            args.append(expr())
        expect(")")
        return make_term(value, *args)

    result = expr()
    if pos != len(tokens):
        raise ValidationError(f"Trailing input after term: {tokens[pos][1]!r}")
    return result if isinstance(result, Term) else const(result)


# ═══════════════════════════════════════════════════════════════════════════════
# RING-AWARE CANONICALIZATION AND EVALUATION
# ═══════════════════════════════════════════════════════════════════════════════

Operand = Union[Term, int]


class TermAlgebra:
    """Canonicalizes and evaluates terms in one ring."""

    def __init__(self, ring: UOR):
        self.ring = ring
        self._mask = ring.mask
        self._width = ring.width

    # Identity and annihilator per AC operation: (identity, annihilator)
    def _units(self, op: str) -> Tuple[int, Optional[int]]:
        return {
            "xor": (0, None),
            "and": (self._mask, 0),
            "or": (0, self._mask),
        }[op]

    def canonicalize(self, term: Term) -> Term:
        """Full ring-aware canonicalization."""
        result = self._canon(self._structural_rewrite(term))
        return result if isinstance(result, Term) else const(result)

    def _structural_rewrite(self, term: Term) -> Term:
        """
        Ring-independent rewrites: derived expansion, involution
        cancellation, associative flattening (no sorting).
        """
        if term.is_leaf():
            return term
        operands = [self._structural_rewrite(op) if isinstance(op, Term) else op
                    for op in term.operands]
        op = term.operation

        if op == "succ":
            return self._structural_rewrite(Term("neg", (Term("bnot", (operands[0],)),)))
        if op == "pred":
            return self._structural_rewrite(Term("bnot", (Term("neg", (operands[0],)),)))

        if op in ("neg", "bnot"):
            inner = operands[0]
            if isinstance(inner, Term) and inner.operation == op:
                x = inner.operands[0]
                return x if isinstance(x, Term) else const(x)
            return Term(op, (inner,))

        flat: List[Operand] = []

        def flatten(t: Operand) -> None:
            if isinstance(t, Term) and t.operation == op:
                for child in t.operands:
                    flatten(child)
            else:
                flat.append(t)

        for operand in operands:
            flatten(operand)
        return Term(op, tuple(flat))

    def _atomize(self, t: Operand) -> Operand:
        """Collapse leaf-constant terms to raw ints reduced mod cycle."""
        if isinstance(t, Term):
            return t.operands[0] & self._mask if t.is_leaf() else t
        return t & self._mask

    def _key(self, t: Operand) -> str:
        if isinstance(t, int):
            return f"int:{t:0{self._width * 2}x}"
        return f"term:{t.canonical_serialize(self._width)}"

    def _sort_key(self, t: Operand) -> Tuple[int, str]:
        # Constants first, then terms, each by canonical text
        if isinstance(t, int):
            return (0, f"{t:0{self._width * 2}x}")
        return (1, t.canonical_serialize(self._width))

    def _canon(self, term: Term) -> Operand:
        if term.is_leaf():
            return self._atomize(term)

        operands = [self._atomize(self._canon(op) if isinstance(op, Term) else op)
                    for op in term.operands]
        op = term.operation
        if op not in AC_OPS:
            # Reduction may expose f(f(x)) again: neg(xor(neg(x), 0)) -> x
            inner = operands[0]
            if isinstance(inner, Term) and inner.operation == op:
                return inner.operands[0]
            return Term(op, (inner,))

        # A reduced child may expose a same-op term: or(xor(a, b), 0) -> xor(a, b)
        flat: List[Operand] = []
        for o in operands:
            if isinstance(o, Term) and o.operation == op:
                flat.extend(o.operands)
            else:
                flat.append(o)
        operands = flat

        identity, annihilator = self._units(op)
        if annihilator is not None and annihilator in operands:
            return annihilator

        counts = Counter(self._key(o) for o in operands)
        kept: List[Operand] = []
        seen = set()
        for o in operands:
            key = self._key(o)
            if key in seen or (isinstance(o, int) and o == identity):
                continue
            seen.add(key)
            # xor cancels pairs; and/or are idempotent
            if op != "xor" or counts[key] % 2 == 1:
                kept.append(o)

        if not kept:
            return identity
        if len(kept) == 1:
            return kept[0]
        kept.sort(key=self._sort_key)
        return Term(op, tuple(kept))

    def evaluate(self, term: Union[Term, int]) -> ByteTuple:
        """Evaluate a term to produce a datum."""
        ring = self.ring
        if isinstance(term, int):
            return ring.normalize(term)
        if term.is_leaf():
            return ring.normalize(term.operands[0])

        values = [self.evaluate(op) for op in term.operands]
        op = term.operation
        if op in UNARY:
            return getattr(ring, op)(values[0])
        combine = {"xor": ring.xor, "and": ring.band, "or": ring.bor}.get(op)
        if combine is None:
            raise ValidationError(f"Unknown operation: {op}")
        result = values[0]
        for other in values[1:]:
            result = combine(result, other)
        return result

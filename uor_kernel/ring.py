"""
Ring engine over Z/(2^bits)Z presented as big-endian byte tuples.

Signature Σ (primitive operations):
  - neg  : unary  (additive inverse, -x mod 2^bits)
  - bnot : unary  (bitwise complement, ~x)
  - xor  : binary (bitwise exclusive or)
  - and  : binary (bitwise and)
  - or   : binary (bitwise or)

The two primitive INVOLUTIONS are neg and bnot.

DERIVED OPERATIONS (not in primitive signature):
  - succ(x) = neg(bnot(x)) = x + 1 mod 2^bits
  - pred(x) = bnot(neg(x)) = x - 1 mod 2^bits

CRITICAL IDENTITY (Theorem):
  neg(bnot(x)) = succ(x)

Arithmetic extensions add/sub/mul reduce mod cycle and are outside Σ.

A ring verifies itself before it is trusted: `verify()` checks the critical
identity (and the involution laws) exhaustively when the ring is small enough
to enumerate, and over boundaries plus a seeded random sample otherwise.
"""

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from .config import DEFAULT_SETTINGS, Settings
from .errors import CoherenceError, ValidationError
from .triad import Triad, triad as _triad
from . import identity

logger = logging.getLogger(__name__)

ByteTuple = Tuple[int, ...]
Operand = Union[int, ByteTuple]


@dataclass(frozen=True)
class RingConfig:
    """Immutable shape of a ring at one quantum level."""
    quantum: int
    width: int
    bits: int
    cycle: int
    mask: int

    @classmethod
    def for_quantum(cls, quantum: int) -> 'RingConfig':
        if quantum < 0:
            raise ValidationError("Quantum must be non-negative")
        width = quantum + 1
        bits = 8 * width
        cycle = 1 << bits
        return cls(quantum=quantum, width=width, bits=bits, cycle=cycle, mask=cycle - 1)


@dataclass(frozen=True)
class CoherenceResult:
    """Outcome of a ring self-verification."""
    verified: bool
    failures: Tuple[int, ...]
    ring_size: int
    checked: int
    exhaustive: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verified": self.verified,
            "failures": list(self.failures),
            "ringSize": self.ring_size,
            "checked": self.checked,
            "exhaustive": self.exhaustive,
        }


class UOR:
    """
    Computation engine for arbitrary quantum level.

    Quantum 0: 8-bit   (256 states)
    Quantum 1: 16-bit  (65,536 states)
    Quantum 2: 24-bit  (16,777,216 states)
    Quantum 3: 32-bit  (4,294,967,296 states)
    ...

    Semantics: Modular ring Z/(2^bits)Z
    All operations reduce mod cycle. This is the canonical interpretation.

    Does not enumerate. Computes compositionally.
    """

    BYTE_BITS = 8
    BYTE_CYCLE = 256

    # Sorted for deterministic output
    SIGNATURE = ("and", "bnot", "neg", "or", "xor")
    UNARY_OPS = ("bnot", "neg", "pred", "succ")
    BINARY_OPS = ("add", "and", "mul", "or", "sub", "xor")
    INVOLUTIONS = ("bnot", "neg")
    DERIVED_OPS = ("pred", "succ")

    def __init__(self, quantum: int = 0, settings: Optional[Settings] = None):
        self.config = RingConfig.for_quantum(quantum)
        self.settings = settings or DEFAULT_SETTINGS
        self.quantum = quantum
        self.width = self.config.width
        self.bits = self.config.bits
        self.cycle = self.config.cycle
        self._mask = self.config.mask
        self._coherence: Optional[CoherenceResult] = None

    def __repr__(self) -> str:
        return f"UOR(quantum={self.quantum})"

    @property
    def mask(self) -> int:
        return self._mask

    @property
    def coherent(self) -> bool:
        """True once verify() has run and passed."""
        return self._coherence is not None and self._coherence.verified

    # ═══════════════════════════════════════════════════════════════════════════
    # REPRESENTATION
    # ═══════════════════════════════════════════════════════════════════════════

    def _validate_bytes(self, b: ByteTuple) -> ByteTuple:
        """Validate byte tuple: correct width, each byte in [0, 255]."""
        if len(b) != self.width:
            raise ValidationError(f"Expected {self.width} bytes, got {len(b)}")
        for i, x in enumerate(b):
            if not isinstance(x, int) or isinstance(x, bool) or not (0 <= x <= 0xFF):
                raise ValidationError(f"Byte {i} out of range: {x}")
        return b

    def to_bytes(self, n: int) -> ByteTuple:
        """Convert integer to tuple of bytes (big-endian). Reduces to canonical representative."""
        n &= self._mask
        return tuple(n.to_bytes(self.width, byteorder="big", signed=False))

    @staticmethod
    def from_bytes(b: ByteTuple) -> int:
        """Convert tuple of bytes to integer (big-endian)."""
        return int.from_bytes(bytes(b), byteorder="big")

    def normalize(self, n: Operand) -> ByteTuple:
        """Normalize input to validated byte tuple. Integers reduced mod cycle."""
        if isinstance(n, int):
            return self.to_bytes(n)
        return self._validate_bytes(tuple(n))

    def value(self, n: Operand) -> int:
        return self.from_bytes(self.normalize(n))

    def contains(self, n: int) -> bool:
        return isinstance(n, int) and 0 <= n < self.cycle

    # ═══════════════════════════════════════════════════════════════════════════
    # PRIMITIVE SIGNATURE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    def neg(self, n: Operand) -> ByteTuple:
        """Additive inverse (two's complement). PRIMITIVE INVOLUTION."""
        return self.to_bytes((-self.value(n)) & self._mask)

    def bnot(self, n: Operand) -> ByteTuple:
        """Bitwise complement (per byte). PRIMITIVE INVOLUTION."""
        return tuple(byte ^ 0xFF for byte in self.normalize(n))

    def xor(self, a: Operand, b: Operand) -> ByteTuple:
        """XOR (per byte). PRIMITIVE BINARY: commutative, associative."""
        return tuple(x ^ y for x, y in zip(self.normalize(a), self.normalize(b)))

    def band(self, a: Operand, b: Operand) -> ByteTuple:
        """AND (per byte). PRIMITIVE BINARY: commutative, associative."""
        return tuple(x & y for x, y in zip(self.normalize(a), self.normalize(b)))

    def bor(self, a: Operand, b: Operand) -> ByteTuple:
        """OR (per byte). PRIMITIVE BINARY: commutative, associative."""
        return tuple(x | y for x, y in zip(self.normalize(a), self.normalize(b)))

    # ═══════════════════════════════════════════════════════════════════════════
    # DERIVED AND ARITHMETIC OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    def succ(self, n: Operand) -> ByteTuple:
        """Increment (DERIVED: succ = neg ∘ bnot). CRITICAL IDENTITY."""
        return self.neg(self.bnot(n))

    def pred(self, n: Operand) -> ByteTuple:
        """Decrement (DERIVED: pred = bnot ∘ neg)."""
        return self.bnot(self.neg(n))

    def add(self, a: Operand, b: Operand) -> ByteTuple:
        return self.to_bytes(self.value(a) + self.value(b))

    def sub(self, a: Operand, b: Operand) -> ByteTuple:
        return self.to_bytes(self.value(a) - self.value(b))

    def mul(self, a: Operand, b: Operand) -> ByteTuple:
        return self.to_bytes(self.value(a) * self.value(b))

    def compute(self, op: str, x: Operand, y: Optional[Operand] = None) -> int:
        """Execute a named operation and return the integer result."""
        if op in self.UNARY_OPS:
            return self.from_bytes(getattr(self, op)(x))
        if op not in self.BINARY_OPS:
            raise ValidationError(f"Unknown operation: {op}")
        if y is None:
            raise ValidationError(f"Operation {op} requires two operands")
        method = {"and": self.band, "or": self.bor}.get(op) or getattr(self, op)
        return self.from_bytes(method(x, y))

    # ═══════════════════════════════════════════════════════════════════════════
    # TRIADIC COORDINATES AND ADDRESSING
    # ═══════════════════════════════════════════════════════════════════════════

    def stratum(self, n: Operand) -> ByteTuple:
        """Stratum vector (popcount per byte)."""
        return self.triad(n).stratum

    def spectrum(self, n: Operand) -> Tuple[Tuple[int, ...], ...]:
        """Spectrum (basis elements per byte)."""
        return self.triad(n).spectrum

    def triad(self, n: Operand) -> Triad:
        """Complete triadic coordinates."""
        return _triad(self.normalize(n))

    def iri(self, n: Operand) -> str:
        return identity.bytes_to_iri(self.normalize(n), self.settings.base_iri)

    def glyph(self, n: Operand) -> str:
        return identity.bytes_to_glyph(self.normalize(n))

    # ═══════════════════════════════════════════════════════════════════════════
    # COHERENCE VERIFICATION
    # ═══════════════════════════════════════════════════════════════════════════

    def verification_values(self) -> Tuple[List[int], bool]:
        """All ring elements when enumerable, else boundaries plus a seeded sample."""
        if self.cycle <= self.settings.enumeration_ceiling:
            return list(range(self.cycle)), True

        samples: Set[int] = {0, 1, self.cycle - 1, self.cycle - 2, self.cycle // 2}
        for v in (0x55, 0xAA):
            samples.add(self.from_bytes(tuple([v] * self.width)))
        for i in range(self.width):
            for v in (0x01, 0x80, 0xFF):
                b = [0] * self.width
                b[i] = v
                samples.add(self.from_bytes(tuple(b)))

        rng = random.Random(self.settings.coherence_seed ^ self.quantum)
        for _ in range(self.settings.coherence_sample_size):
            samples.add(rng.randrange(self.cycle))
        return sorted(samples), False

    def _element_coherent(self, n: int) -> bool:
        """Check the critical identity and involution laws at one element."""
        b = self.to_bytes(n)
        if self.neg(self.bnot(b)) != self.to_bytes((n + 1) & self._mask):
            return False
        if self.bnot(self.neg(b)) != self.to_bytes((n - 1) & self._mask):
            return False
        if self.bnot(self.bnot(b)) != b or self.neg(self.neg(b)) != b:
            return False
        if self.xor(b, self.bnot(b)) != self.to_bytes(self._mask):
            return False
        if (n + self.from_bytes(self.neg(b))) & self._mask != 0:
            return False
        return self.triad(b).total_stratum + self.triad(self.bnot(b)).total_stratum == self.bits

    def _verify_binary_homomorphism(self, test_values: List[int]) -> List[int]:
        """Verify binary bitwise ops match integer bitwise ops on a subset."""
        k = min(32, len(test_values))
        subset = [test_values[(i * len(test_values)) // k] for i in range(k)]
        failures = []
        for na in subset:
            for nb in subset:
                if (self.from_bytes(self.xor(na, nb)) != na ^ nb
                        or self.from_bytes(self.band(na, nb)) != na & nb
                        or self.from_bytes(self.bor(na, nb)) != na | nb):
                    failures.append(na)
                    break
        return failures

    def verify(self) -> CoherenceResult:
        """
        Verify coherence at this quantum level.

        Marks the ring coherent or incoherent; does not raise.
        Use require_coherent() where an incoherent ring must stop the caller.
        """
        values, exhaustive = self.verification_values()
        failures = {n for n in values if not self._element_coherent(n)}
        failures.update(self._verify_binary_homomorphism(values))

        result = CoherenceResult(
            verified=not failures,
            failures=tuple(sorted(failures)),
            ring_size=self.cycle,
            checked=len(values),
            exhaustive=exhaustive,
        )
        self._coherence = result
        if result.verified:
            logger.info("Q%d coherent: %d elements checked (%s)", self.quantum,
                        result.checked, "exhaustive" if exhaustive else "sampled")
        else:
            logger.error("Q%d incoherent: %d failures, first at %d", self.quantum,
                         len(result.failures), result.failures[0])
        return result

    def require_coherent(self) -> CoherenceResult:
        """Verify if needed; raise CoherenceError if the ring is incoherent."""
        result = self._coherence or self.verify()
        if not result.verified:
            shown = ", ".join(str(x) for x in result.failures[:8])
            raise CoherenceError(
                f"Q{self.quantum} failed self-verification at "
                f"{len(result.failures)} element(s): {shown}"
            )
        return result


# ═══════════════════════════════════════════════════════════════════════════════
# FACTORY
# ═══════════════════════════════════════════════════════════════════════════════

def Q0() -> UOR: return UOR(quantum=0)
def Q1() -> UOR: return UOR(quantum=1)
def Q2() -> UOR: return UOR(quantum=2)
def Q3() -> UOR: return UOR(quantum=3)
def Q(n: int) -> UOR: return UOR(quantum=n)

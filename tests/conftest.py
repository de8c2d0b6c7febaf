import pytest

from uor_kernel.derivation import DerivationEngine
from uor_kernel.ring import UOR
from uor_kernel.store import InMemoryStore


@pytest.fixture
def q0():
    ring = UOR(quantum=0)
    ring.verify()
    return ring


@pytest.fixture
def q1():
    return UOR(quantum=1)


@pytest.fixture
def engine(q0):
    return DerivationEngine(q0)


@pytest.fixture
def store():
    return InMemoryStore()


class BrokenRing(UOR):
    """neg shifted by one: still an involution, but neg(bnot(x)) != x + 1."""

    def neg(self, n):
        return self.to_bytes((-self.value(n) + 1) & self.mask)


@pytest.fixture
def broken_ring():
    return BrokenRing(quantum=0)

"""
UOR kernel: verified computation over the ring Z/(2^bits)Z.

    from uor_kernel import Q0, DerivationEngine

    ring = Q0()
    ring.verify()
    DerivationEngine(ring).derive("xor(0x55, 0xaa)")
"""

from .canonical import canonical_bytes, canonical_json, compute_cid, content_address, module_identity
from .certificates import Certificate, CertificateIssuer
from .config import DEFAULT_SETTINGS, Settings
from .correlation import Correlation, correlate
from .derivation import Derivation, DerivationEngine, derive, verify_derivation
from .errors import (ClosureError, CoherenceError, Rejection, StoreError, UORError,
                     ValidationError)
from .grading import EpistemicGrade, GradeLedger, compute_grade
from .morphism import TransformRecord, cross_quantum_transform, embed, project
from .partition import ClosureMode, PartitionComponent, classify, compute_partition, resolve
from .receipts import Receipt, derivation_receipt, verify_receipt_chain, with_verified_receipt
from .ring import Q, Q0, Q1, Q2, Q3, UOR, CoherenceResult, RingConfig
from .semantic_index import SemanticIndex, deduplicate
from .state import StateFrame, state_frame
from .store import InMemoryStore, Store
from .terms import Term, TermAlgebra, make_term, parse_term
from .triad import Triad, triad
from .upgrade import upgrade_to_a, upgrade_to_b

__version__ = "0.1.0"

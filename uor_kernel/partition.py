"""
Four-way partition of a ring.

Every element falls into exactly one of:
  - UnitSet:        1 and cycle-1
  - ExteriorSet:    zero and the midpoint cycle/2
  - IrreducibleSet: odd elements that are not units
  - ReducibleSet:   every other even element

Precedence is fixed: zero, then units, then odd, then midpoint, then the rest.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .errors import ClosureError, ValidationError
from .ring import UOR

logger = logging.getLogger(__name__)


class PartitionComponent(Enum):
    UNIT = "partition:UnitSet"
    EXTERIOR = "partition:ExteriorSet"
    IRREDUCIBLE = "partition:IrreducibleSet"
    REDUCIBLE = "partition:ReducibleSet"


class ClosureMode(Enum):
    """
    How much verification accompanies a classification.

    ONE_STEP:     Classify each seed once, no further checks.
    FIXED_POINT:  Additionally check that neg maps the odd classes
                  (Unit, Irreducible) back into the odd classes.
    GRAPH_CLOSED: Additionally require that neg and bnot of every seed land
                  on an element present in the classified set. Missing
                  targets are reported, not raised.
    """
    ONE_STEP = "oneStep"
    FIXED_POINT = "fixedPoint"
    GRAPH_CLOSED = "graphClosed"


@dataclass(frozen=True)
class Classification:
    component: PartitionComponent
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"component": self.component.value, "reason": self.reason}


def classify(x: int, bits: int) -> Classification:
    """Classify x within Z/(2^bits)Z."""
    m = 1 << bits
    if not 0 <= x < m:
        raise ValidationError(f"{x} is outside [0, {m})")
    if x == 0:
        return Classification(PartitionComponent.EXTERIOR, "Additive identity (zero)")
    if x == 1 or x == m - 1:
        return Classification(PartitionComponent.UNIT, f"Ring unit: multiplicative inverse exists in R_{bits}")
    if x % 2:
        return Classification(PartitionComponent.IRREDUCIBLE, f"Odd, not a unit: irreducible in R_{bits}")
    if x == m // 2:
        return Classification(PartitionComponent.EXTERIOR, f"Even generator ({m // 2}): exterior in R_{bits}")
    return Classification(PartitionComponent.REDUCIBLE, f"Even: decomposes in R_{bits}")


_ODD_CLASSES = (PartitionComponent.UNIT, PartitionComponent.IRREDUCIBLE)


@dataclass
class PartitionResult:
    units: List[int]
    exterior: List[int]
    irreducible: List[int]
    reducible: List[int]
    closure_mode: ClosureMode
    closure_errors: List[str] = field(default_factory=list)

    @property
    def closure_verified(self) -> bool:
        return not self.closure_errors

    @property
    def total(self) -> int:
        return len(self.units) + len(self.exterior) + len(self.irreducible) + len(self.reducible)

    @property
    def density(self) -> float:
        """Share of irreducible elements."""
        return len(self.irreducible) / self.total if self.total else 0.0

    def cardinalities(self) -> Dict[str, int]:
        return {
            PartitionComponent.UNIT.value: len(self.units),
            PartitionComponent.EXTERIOR.value: len(self.exterior),
            PartitionComponent.IRREDUCIBLE.value: len(self.irreducible),
            PartitionComponent.REDUCIBLE.value: len(self.reducible),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "@type": "partition:Partition",
            "partition:cardinalities": self.cardinalities(),
            "partition:density": self.density,
            "closureMode": self.closure_mode.value,
            "closureVerified": self.closure_verified,
            "closureErrors": list(self.closure_errors),
        }


def compute_partition(
    ring: UOR,
    seeds: Optional[Iterable[int]] = None,
    mode: ClosureMode = ClosureMode.ONE_STEP,
) -> PartitionResult:
    """
    Classify a seed set (default: the whole ring, capped at the enumeration
    ceiling) and run the closure checks that `mode` asks for.
    """
    ceiling = ring.settings.enumeration_ceiling
    if seeds is None:
        if ring.cycle > ceiling and mode == ClosureMode.GRAPH_CLOSED:
            raise ClosureError(
                f"Graph closure over the default seed set requires full ring enumeration "
                f"({ring.cycle:,} elements, ceiling {ceiling:,}). Pass an explicit seed set."
            )
        values = list(range(min(ring.cycle, ceiling)))
    else:
        values = list(dict.fromkeys(seeds))

    buckets: Dict[PartitionComponent, List[int]] = {c: [] for c in PartitionComponent}
    class_map: Dict[int, PartitionComponent] = {}
    for v in values:
        component = classify(v, ring.bits).component
        buckets[component].append(v)
        class_map[v] = component

    errors: List[str] = []
    if mode in (ClosureMode.FIXED_POINT, ClosureMode.GRAPH_CLOSED):
        for v in values:
            neg_v = ring.compute("neg", v)
            bnot_v = ring.compute("bnot", v)
            if class_map[v] in _ODD_CLASSES:
                neg_class = class_map.get(neg_v) or classify(neg_v, ring.bits).component
                if neg_class not in _ODD_CLASSES:
                    errors.append(f"neg({v})={neg_v}: expected unit/irreducible, got {neg_class.value}")
            if mode == ClosureMode.GRAPH_CLOSED:
                if neg_v not in class_map:
                    errors.append(f"neg({v})={neg_v}: not in partition set")
                if bnot_v not in class_map:
                    errors.append(f"bnot({v})={bnot_v}: not in partition set")

    if errors:
        logger.info("Q%d %s closure: %d error(s)", ring.quantum, mode.value, len(errors))

    return PartitionResult(
        units=buckets[PartitionComponent.UNIT],
        exterior=buckets[PartitionComponent.EXTERIOR],
        irreducible=buckets[PartitionComponent.IRREDUCIBLE],
        reducible=buckets[PartitionComponent.REDUCIBLE],
        closure_mode=mode,
        closure_errors=errors,
    )


@dataclass(frozen=True)
class Resolution:
    canonical_iri: str
    classification: Classification
    strategy: str
    trace: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canonicalIri": self.canonical_iri,
            "partition": self.classification.to_dict(),
            "strategy": self.strategy,
            "trace": list(self.trace),
        }


def resolve(ring: UOR, value: int) -> Resolution:
    """Normalize, classify and address a value, keeping an audit trace."""
    trace = []
    normalized = value % ring.cycle
    trace.append(f"normalize({value}) -> {normalized} mod {ring.cycle}")

    classification = classify(normalized, ring.bits)
    trace.append(f"classify({normalized}) -> {classification.component.value}")

    iri = ring.iri(normalized)
    trace.append(f"address({normalized}) -> {iri}")

    succ_val = ring.compute("succ", normalized)
    holds = succ_val == (normalized + 1) % ring.cycle
    trace.append(f"verify succ({normalized}) = {succ_val} {'ok' if holds else 'FAILED'}")

    return Resolution(
        canonical_iri=iri,
        classification=classification,
        strategy="dihedral-factorization",
        trace=trace,
    )

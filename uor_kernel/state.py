"""
State frame: the lifecycle view of one ring element.

A frame binds a value to its partition component, states whether it is a
stable entry point (zero or a unit) and whether it triggers an exit (the
phase boundary cycle/2, or any exterior element), and lists the transition
taken by each unary operation.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from .derivation import utc_timestamp
from .errors import ValidationError
from .partition import PartitionComponent, classify
from .ring import UOR


@dataclass(frozen=True)
class Transition:
    operation: str
    from_value: int
    to_value: int
    from_component: PartitionComponent
    to_component: PartitionComponent

    @property
    def component_changed(self) -> bool:
        return self.from_component != self.to_component

    def to_dict(self) -> Dict[str, Any]:
        return {
            "@type": "state:Transition",
            "state:operation": f"op:{self.operation}",
            "state:fromState": self.from_value,
            "state:toState": self.to_value,
            "state:fromComponent": self.from_component.value,
            "state:toComponent": self.to_component.value,
            "state:componentChanged": self.component_changed,
            "state:formula": f"{self.operation}({self.from_value}) = {self.to_value}",
        }


@dataclass(frozen=True)
class StateFrame:
    value: int
    quantum: int
    ring_modulus: int
    component: PartitionComponent
    reason: str
    is_stable_entry: bool
    is_phase_boundary: bool
    transitions: List[Transition]
    critical_identity_holds: bool
    timestamp: str

    @property
    def is_irreducible(self) -> bool:
        return self.component == PartitionComponent.IRREDUCIBLE

    @property
    def is_exterior(self) -> bool:
        return self.component == PartitionComponent.EXTERIOR

    @property
    def reachable_components(self) -> List[PartitionComponent]:
        return list(dict.fromkeys(t.to_component for t in self.transitions))

    def to_dict(self, base_iri: str) -> Dict[str, Any]:
        bits = self.ring_modulus.bit_length() - 1
        return {
            "@id": f"{base_iri}state/x{self.value}-n{bits}",
            "@type": "state:Frame",
            "state:binding": {
                "@type": "state:StateBinding",
                "state:value": self.value,
                "state:quantum": self.quantum,
                "state:ringModulus": self.ring_modulus,
                "state:component": self.component.value,
                "state:componentReason": self.reason,
                "state:isIrreducible": self.is_irreducible,
            },
            "state:entryCondition": {
                "@type": "state:EntryCondition",
                "state:isStableEntry": self.is_stable_entry,
            },
            "state:exitCondition": {
                "@type": "state:ExitCondition",
                "state:isPhaseBoundary": self.is_phase_boundary,
                "state:isExterior": self.is_exterior,
            },
            "state:transitions": [t.to_dict() for t in self.transitions],
            "state:transitionCount": len(self.transitions),
            "state:reachableComponents": [c.value for c in self.reachable_components],
            "state:criticalIdentityHolds": self.critical_identity_holds,
            "state:timestamp": self.timestamp,
        }


def state_frame(ring: UOR, x: int) -> StateFrame:
    if not ring.contains(x):
        raise ValidationError(f"{x} is outside [0, {ring.cycle})")
    c = classify(x, ring.bits)
    is_unit = c.component == PartitionComponent.UNIT

    transitions = []
    for op in ("neg", "bnot", "succ", "pred"):
        y = ring.compute(op, x)
        transitions.append(Transition(op, x, y, c.component, classify(y, ring.bits).component))

    return StateFrame(
        value=x,
        quantum=ring.quantum,
        ring_modulus=ring.cycle,
        component=c.component,
        reason=c.reason,
        is_stable_entry=x == 0 or is_unit,
        is_phase_boundary=x == ring.cycle // 2,
        transitions=transitions,
        critical_identity_holds=ring.compute("neg", ring.bnot(x)) == (x + 1) % ring.cycle,
        timestamp=utc_timestamp(),
    )

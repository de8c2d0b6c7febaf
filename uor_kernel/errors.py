"""Exception types and structured rejections."""

from dataclasses import dataclass, field
from typing import Any, Dict


class UORError(Exception):
    """Base class for all kernel errors."""
    pass


class CoherenceError(UORError):
    """Raised when the machine fails self-verification."""
    pass


class ValidationError(UORError):
    """Raised when input fails validation."""
    pass


class ClosureError(UORError):
    """Raised when closure would cause full ring enumeration unexpectedly."""
    pass


class StoreError(UORError):
    """Raised by store implementations when a read or write fails."""
    pass


# Machine-readable rejection reasons
BLOCKED = "BLOCKED"
NOT_ISOMETRY = "NOT_ISOMETRY"
NOT_INVOLUTION = "NOT_INVOLUTION"
DERIVATION_MISMATCH = "DERIVATION_MISMATCH"
OUT_OF_RANGE = "OUT_OF_RANGE"


@dataclass(frozen=True)
class Rejection:
    """
    A refused request. Returned, never raised.

    Carries the reason code plus the evidence that led to it (failing pairs,
    failing ring elements, expected vs. actual values).
    """
    reason: str
    message: str
    evidence: Dict[str, Any] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "@type": "cert:Rejection",
            "error": self.reason,
            "reason": self.message,
            **self.evidence,
        }

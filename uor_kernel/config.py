"""
Configuration.

Defaults are module constants. `Settings.from_env()` overlays UOR_*
environment variables; the CLI overlays its options on top of that.
"""

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from .errors import ValidationError

BASE_IRI = "https://uor.foundation/u/"

# Largest ring enumerated element-by-element; larger rings are sampled.
ENUMERATION_CEILING = 65536

COHERENCE_SAMPLE_SIZE = 50
COHERENCE_SEED = 0x55AA

BATCH_SIZE = 50

FUZZY_THRESHOLD = 0.6
FUZZY_LIMIT = 10
STRONG_MATCH = 0.8

ISOMETRY_MIN_PAIRS = 3
ISOMETRY_MAX_PAIRS = 16


@dataclass(frozen=True)
class Settings:
    base_iri: str = BASE_IRI
    enumeration_ceiling: int = ENUMERATION_CEILING
    coherence_sample_size: int = COHERENCE_SAMPLE_SIZE
    coherence_seed: int = COHERENCE_SEED
    batch_size: int = BATCH_SIZE
    fuzzy_threshold: float = FUZZY_THRESHOLD
    fuzzy_limit: int = FUZZY_LIMIT
    strong_match: float = STRONG_MATCH

    _ENV = {
        "UOR_BASE_IRI": ("base_iri", str),
        "UOR_ENUMERATION_CEILING": ("enumeration_ceiling", int),
        "UOR_COHERENCE_SAMPLE_SIZE": ("coherence_sample_size", int),
        "UOR_COHERENCE_SEED": ("coherence_seed", int),
        "UOR_BATCH_SIZE": ("batch_size", int),
        "UOR_FUZZY_THRESHOLD": ("fuzzy_threshold", float),
        "UOR_FUZZY_LIMIT": ("fuzzy_limit", int),
        "UOR_STRONG_MATCH": ("strong_match", float),
    }

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Build settings from defaults overlaid with UOR_* variables."""
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        for var, (name, kind) in cls._ENV.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            try:
                overrides[name] = kind(raw)
            except ValueError:
                raise ValidationError(f"{var}={raw!r} is not a valid {kind.__name__}")
        return cls(**overrides)

    def override(self, **changes: Any) -> 'Settings':
        """Return a copy with the non-None changes applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


DEFAULT_SETTINGS = Settings()

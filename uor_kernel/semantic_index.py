"""
Semantic index: in-memory lookup over a snapshot of stored datums.

The index is a disposable cache, never a source of truth. It is built in
bulk and never mutated; `rebuild` returns a fresh index and notifies the
observers passed at construction.

Lookup keys: IRI, glyph, decimal value, hex (with or without 0x, any case).
Fuzzy matching ranks every entry by correlation fidelity.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .correlation import correlate
from .derivation import utc_timestamp
from .grading import EpistemicGrade
from .ring import UOR
from .store import Row, Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexEntry:
    iri: str
    value: int
    quantum: int
    glyph: str
    hex: str
    total_stratum: int

    @classmethod
    def from_row(cls, row: Row, width: int) -> 'IndexEntry':
        return cls(
            iri=row["iri"],
            value=row["value"],
            quantum=row["quantum"],
            glyph=row["glyph"],
            hex=f"{row['value']:0{width * 2}X}",
            total_stratum=row["total_stratum"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "iri": self.iri,
            "value": self.value,
            "quantum": self.quantum,
            "glyph": self.glyph,
            "hex": self.hex,
            "totalStratum": self.total_stratum,
        }


@dataclass(frozen=True)
class SimilarEntry:
    entry: IndexEntry
    fidelity: float

    def to_dict(self) -> Dict[str, Any]:
        return {"entry": self.entry.to_dict(), "fidelity": self.fidelity}


@dataclass(frozen=True)
class EntityResolution:
    iri: Optional[str]
    confidence: float
    grade: EpistemicGrade
    match_type: str  # exact | fuzzy | none
    entry: Optional[IndexEntry] = None
    similar: List[SimilarEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "iri": self.iri,
            "confidence": self.confidence,
            "grade": self.grade.value,
            "matchType": self.match_type,
            "entry": self.entry.to_dict() if self.entry else None,
            "similar": [s.to_dict() for s in self.similar],
        }


IndexObserver = Callable[['SemanticIndex'], None]


def _strip_hex(text: str) -> str:
    return text[2:] if text[:2] in ("0x", "0X") else text


class SemanticIndex:
    def __init__(
        self,
        ring: UOR,
        entries: Iterable[IndexEntry],
        observers: Optional[Sequence[IndexObserver]] = None,
    ):
        self.ring = ring
        self.entries: List[IndexEntry] = sorted(entries, key=lambda e: e.value)
        self.observers: List[IndexObserver] = list(observers or [])
        self.built_at = utc_timestamp()

        self.by_iri: Dict[str, IndexEntry] = {}
        self.by_glyph: Dict[str, IndexEntry] = {}
        self.by_value: Dict[str, IndexEntry] = {}
        self.by_hex: Dict[str, IndexEntry] = {}
        for e in self.entries:
            self.by_iri[e.iri] = e
            self.by_glyph[e.glyph] = e
            self.by_value[str(e.value)] = e
            self.by_hex[e.hex] = e
        logger.debug("Indexed %d Q%d entries", len(self.entries), ring.quantum)

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def build(cls, store: Store, ring: UOR,
              observers: Optional[Sequence[IndexObserver]] = None) -> 'SemanticIndex':
        """Snapshot every stored datum at the ring's quantum."""
        rows = store.datums(ring.quantum)
        index = cls(ring, (IndexEntry.from_row(r, ring.width) for r in rows), observers)
        for observer in index.observers:
            observer(index)
        return index

    @classmethod
    def from_values(cls, ring: UOR, values: Iterable[int],
                    observers: Optional[Sequence[IndexObserver]] = None) -> 'SemanticIndex':
        entries = []
        for v in values:
            b = ring.to_bytes(v)
            entries.append(IndexEntry(
                iri=ring.iri(b),
                value=ring.from_bytes(b),
                quantum=ring.quantum,
                glyph=ring.glyph(b),
                hex=f"{ring.from_bytes(b):0{ring.width * 2}X}",
                total_stratum=ring.triad(b).total_stratum,
            ))
        return cls(ring, entries, observers)

    def rebuild(self, store: Store) -> 'SemanticIndex':
        """A new index over the store's current contents, same observers."""
        return SemanticIndex.build(store, self.ring, self.observers)

    # ═══════════════════════════════════════════════════════════════════════════
    # LOOKUP
    # ═══════════════════════════════════════════════════════════════════════════

    def exact_lookup(self, mention: str) -> Optional[IndexEntry]:
        text = mention.strip()
        for table in (self.by_iri, self.by_glyph, self.by_value):
            if text in table:
                return table[text]
        # A bare digit string is decimal only; hex needs 0x or a letter
        if text.isdigit():
            return None
        key = _strip_hex(text).upper()
        if not key:
            return None
        return self.by_hex.get(key.zfill(self.ring.width * 2))

    def find_similar(self, value: int, threshold: Optional[float] = None,
                     limit: Optional[int] = None) -> List[SimilarEntry]:
        """Entries other than `value` with fidelity >= threshold, best first."""
        settings = self.ring.settings
        threshold = settings.fuzzy_threshold if threshold is None else threshold
        limit = settings.fuzzy_limit if limit is None else limit

        results = []
        for entry in self.entries:
            if entry.value == value:
                continue
            f = correlate(self.ring, value, entry.value).fidelity
            if f >= threshold:
                results.append(SimilarEntry(entry, f))
        results.sort(key=lambda s: (-s.fidelity, s.entry.value))
        return results[:limit]

    def _parse(self, mention: str) -> Optional[int]:
        text = mention.strip()
        if text.isdigit():
            value = int(text)
            return value if self.ring.contains(value) else None
        digits = self.ring.width * 2
        m = re.fullmatch(rf"(?:0[xX])?([0-9a-fA-F]{{1,{digits}}})", text)
        return int(m.group(1), 16) if m else None

    def resolve_entity(self, mention: str, threshold: Optional[float] = None) -> EntityResolution:
        """
        Exact match wins (confidence 1.0, grade B). Otherwise parse as a
        decimal or hex value and take the best fuzzy match: grade B above
        the strong-match boundary, D below it. No match is grade D.
        """
        exact = self.exact_lookup(mention)
        if exact is not None:
            return EntityResolution(iri=exact.iri, confidence=1.0, grade=EpistemicGrade.B,
                                    match_type="exact", entry=exact)

        value = self._parse(mention)
        if value is not None:
            similar = self.find_similar(value, threshold)
            if similar:
                best = similar[0]
                strong = best.fidelity > self.ring.settings.strong_match
                return EntityResolution(
                    iri=best.entry.iri,
                    confidence=best.fidelity,
                    grade=EpistemicGrade.B if strong else EpistemicGrade.D,
                    match_type="fuzzy",
                    entry=best.entry,
                    similar=similar,
                )

        return EntityResolution(iri=None, confidence=0.0, grade=EpistemicGrade.D, match_type="none")


# ═══════════════════════════════════════════════════════════════════════════════
# DEDUPLICATION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DeduplicationGroup:
    derivation_id: str
    iris: List[str]
    canonical_term: str
    epistemic_grade: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "derivationId": self.derivation_id,
            "iris": list(self.iris),
            "canonicalTerm": self.canonical_term,
            "epistemicGrade": self.epistemic_grade,
        }


@dataclass(frozen=True)
class DeduplicationResult:
    groups: List[DeduplicationGroup]
    total_entities: int

    @property
    def unique_concepts(self) -> int:
        return len(self.groups)

    @property
    def duplicate_count(self) -> int:
        return sum(max(0, len(g.iris) - 1) for g in self.groups)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "groups": [g.to_dict() for g in self.groups],
            "totalEntities": self.total_entities,
            "uniqueConcepts": self.unique_concepts,
            "duplicateCount": self.duplicate_count,
        }


def deduplicate(iris: Sequence[str], store: Store) -> DeduplicationResult:
    """
    Group IRIs by the derivation ids recorded for them. IRIs sharing a
    derivation id denote provably the same concept.
    """
    groups: Dict[str, DeduplicationGroup] = {}
    for iri in dict.fromkeys(iris):
        for row in store.derivations_for(iri):
            did = row["derivation_id"]
            if did in groups:
                groups[did].iris.append(row["result_iri"])
            else:
                groups[did] = DeduplicationGroup(
                    derivation_id=did,
                    iris=[row["result_iri"]],
                    canonical_term=row["canonical_term"],
                    epistemic_grade=row["epistemic_grade"],
                )
    return DeduplicationResult(groups=list(groups.values()), total_entities=len(iris))

"""Typed containers shared across pipeline modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class SignalType(str, Enum):
    """Semantic facet a per-collection search result belongs to."""

    NICHE = "niche"
    STYLE = "style"
    AUDIENCE = "audience"

    @property
    def label(self) -> str:
        return self.value.capitalize()


SIGNAL_ORDER: List[SignalType] = [SignalType.NICHE, SignalType.STYLE, SignalType.AUDIENCE]


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success/error result returned by client boundaries instead of raising."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "Result[T]":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class RawSearchHit:
    """One row returned by a single-signal nearest-neighbour search."""

    signal: SignalType
    id: str
    distance: float
    document: Optional[str]
    entity_id: str


@dataclass(frozen=True)
class SignalMatch:
    """What one signal contributed to a candidate: its summary and raw distance."""

    document: Optional[str]
    distance: float


@dataclass
class CandidateAggregate:
    """Per-entity accumulator; one optional slot per signal."""

    entity_id: str
    niche: Optional[SignalMatch] = None
    style: Optional[SignalMatch] = None
    audience: Optional[SignalMatch] = None

    def get(self, signal: SignalType) -> Optional[SignalMatch]:
        return getattr(self, signal.value)

    def matches(self) -> Dict[SignalType, SignalMatch]:
        out: Dict[SignalType, SignalMatch] = {}
        for signal in SIGNAL_ORDER:
            match = self.get(signal)
            if match is not None:
                out[signal] = match
        return out

    def summary(self, signal: SignalType) -> Optional[str]:
        match = self.get(signal)
        return match.document if match is not None else None


@dataclass(frozen=True)
class ScoredCandidate:
    aggregate: CandidateAggregate
    weighted_similarity: float

    @property
    def entity_id(self) -> str:
        return self.aggregate.entity_id


@dataclass(frozen=True)
class ProfileRecord:
    """Stored profile attributes, with explicit defaults for a missing record."""

    creator_name: str = ""
    handle: str = ""
    platform_id: str = ""
    followers_count: int = 0
    profile_image: str = ""


@dataclass(frozen=True)
class EnrichedCandidate:
    scored: ScoredCandidate
    profile: ProfileRecord = field(default_factory=ProfileRecord)

    @property
    def entity_id(self) -> str:
        return self.scored.entity_id

    @property
    def weighted_similarity(self) -> float:
        return self.scored.weighted_similarity


@dataclass(frozen=True)
class RerankHit:
    """Index into the submitted document list plus the reranker's score."""

    index: int
    relevance_score: float


@dataclass(frozen=True)
class RankedResult:
    candidate: EnrichedCandidate
    relevance_score: float

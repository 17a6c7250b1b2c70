from __future__ import annotations
"""
Retrieval module for the creator search.

Three-signal retrieval = niche + style + audience Chroma collections, fused
per creator and scored with a renormalised weighted average.
This module holds:
- the similarity search client (one call per signal, never raises)
- distance -> similarity normalisation
- per-entity fusion of the three hit lists
- weighted scoring
"""

import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from loguru import logger

from . import config
from .errors import ScoringFailure
from .pipeline_types import (
    SIGNAL_ORDER,
    CandidateAggregate,
    RawSearchHit,
    Result,
    ScoredCandidate,
    SignalMatch,
    SignalType,
)

SearchResult = Result[List[RawSearchHit]]

DEFAULT_COLLECTIONS: Dict[SignalType, str] = {
    SignalType.NICHE: config.NICHE_COLLECTION,
    SignalType.STYLE: config.STYLE_COLLECTION,
    SignalType.AUDIENCE: config.AUDIENCE_COLLECTION,
}


# =============================================================================
# Similarity search client
# =============================================================================

def connect_chroma():
    """
    Build the Chroma client from env: a local/self-hosted server when
    CHROMA_HOST is set, Chroma Cloud otherwise.
    """
    import chromadb

    if config.CHROMA_HOST:
        logger.info("Connecting to Chroma at {}:{}", config.CHROMA_HOST, config.CHROMA_PORT)
        return chromadb.HttpClient(
            host=config.CHROMA_HOST,
            port=config.CHROMA_PORT,
            tenant=config.CHROMA_TENANT or chromadb.DEFAULT_TENANT,
            database=config.CHROMA_DATABASE,
        )
    logger.info("Connecting to Chroma Cloud database '{}'", config.CHROMA_DATABASE)
    return chromadb.CloudClient(
        api_key=config.CHROMA_API_KEY,
        tenant=config.CHROMA_TENANT,
        database=config.CHROMA_DATABASE,
    )


def _checked_distance(value: Any, hit_id: Any) -> float:
    if value is None:
        raise ValueError(f"hit {hit_id} has no distance")
    distance = float(value)
    if distance < 0:
        # ip space on unnormalised vectors
        raise ValueError(f"hit {hit_id} has negative distance {distance}")
    return distance


def format_query_result(result: Mapping[str, Any], signal: SignalType) -> List[RawSearchHit]:
    """
    Flatten the first query row of a Chroma QueryResult into hits.
    Rows without an entity id in their metadata are skipped. Missing,
    ragged or negative distances raise ValueError.
    """
    ids = (result.get("ids") or [[]])[0] or []
    distances = (result.get("distances") or [[]])[0] or []
    documents = (result.get("documents") or [[]])[0] or []
    metadatas = (result.get("metadatas") or [[]])[0] or []

    if len(distances) < len(ids):
        raise ValueError(f"{signal.label} result has {len(ids)} ids but {len(distances)} distances")

    hits: List[RawSearchHit] = []
    for i, hit_id in enumerate(ids):
        meta = metadatas[i] if i < len(metadatas) and metadatas[i] else {}
        entity_id = meta.get(config.ENTITY_ID_METADATA_KEY)
        if not entity_id:
            logger.warning("{} hit {} has no '{}' metadata; skipping",
                           signal.label, hit_id, config.ENTITY_ID_METADATA_KEY)
            continue
        hits.append(
            RawSearchHit(
                signal=signal,
                id=str(hit_id),
                distance=_checked_distance(distances[i], hit_id),
                document=documents[i] if i < len(documents) else None,
                entity_id=str(entity_id),
            )
        )
    return hits


class SimilaritySearchClient:
    """
    Nearest-neighbour search over named collections.

    The Chroma client is blocking, so each query runs in a worker thread;
    three signal searches can then be awaited together.
    """

    def __init__(
        self,
        client,
        collections: Optional[Mapping[SignalType, str]] = None,
        embedding_function=None,
    ) -> None:
        self._client = client
        self._collections = dict(collections or DEFAULT_COLLECTIONS)
        self._embedding_function = embedding_function

    def collection_for(self, signal: SignalType) -> str:
        return self._collections[signal]

    def _get_collection(self, name: str):
        if self._embedding_function is not None:
            return self._client.get_collection(name=name, embedding_function=self._embedding_function)
        return self._client.get_collection(name=name)

    def _query(self, collection_name: str, query_text: str, k: int) -> Mapping[str, Any]:
        collection = self._get_collection(collection_name)
        return collection.query(
            query_texts=[query_text],
            n_results=k,
            include=["documents", "metadatas", "distances"],
        )

    async def search(
        self,
        collection_name: str,
        query_text: str,
        k: int = config.SEARCH_K,
        signal: Optional[SignalType] = None,
    ) -> SearchResult:
        try:
            signal = signal or self._signal_for(collection_name)
            raw = await asyncio.to_thread(self._query, collection_name, query_text, k)
            hits = format_query_result(raw, signal)
        except Exception as e:
            logger.warning("Search on '{}' failed: {}", collection_name, e)
            return Result.fail(str(e) or f"Failed to query collection: {e!r}")
        logger.info("Search on '{}' returned {} hits", collection_name, len(hits))
        return Result.ok(hits)

    async def search_signal(self, signal: SignalType, query_text: str, k: int = config.SEARCH_K) -> SearchResult:
        name = self._collections.get(signal)
        if name is None:
            return Result.fail(f"No collection configured for signal '{signal.value}'")
        return await self.search(name, query_text, k, signal=signal)

    def _signal_for(self, collection_name: str) -> SignalType:
        for signal, name in self._collections.items():
            if name == collection_name:
                return signal
        raise KeyError(f"No signal configured for collection '{collection_name}'")


# =============================================================================
# Score normalization
# =============================================================================

def distance_to_similarity(distance: float) -> float:
    """Map a raw distance in [0, inf) to a similarity in (0, 1]."""
    if distance < 0:
        raise ValueError(f"distance must be >= 0, got {distance}")
    return 1.0 / (1.0 + distance)


# =============================================================================
# Fusion
# =============================================================================

def _fold_hit(acc: Dict[str, CandidateAggregate], hit: RawSearchHit) -> Dict[str, CandidateAggregate]:
    aggregate = acc.get(hit.entity_id)
    if aggregate is None:
        aggregate = CandidateAggregate(entity_id=hit.entity_id)
        acc[hit.entity_id] = aggregate
    if aggregate.get(hit.signal) is None:
        setattr(aggregate, hit.signal.value, SignalMatch(document=hit.document, distance=hit.distance))
    return acc


def fuse_hits(*hit_lists: Iterable[RawSearchHit]) -> List[CandidateAggregate]:
    """
    Union per-signal hit lists into one aggregate per entity.
    A signal slot is only filled once; later hits for the same slot are ignored.
    """
    acc: Dict[str, CandidateAggregate] = {}
    for hits in hit_lists:
        for hit in hits:
            acc = _fold_hit(acc, hit)
    return list(acc.values())


# =============================================================================
# Weighted scoring
# =============================================================================

def weighted_similarity(
    aggregate: CandidateAggregate,
    weights: Mapping[str, float] = config.SIGNAL_WEIGHTS,
) -> float:
    """
    Weighted average of similarities over the signals that actually matched.
    Dividing by the present weights keeps one- or two-signal matches comparable
    to full matches.
    """
    weighted_sum = 0.0
    weight_total = 0.0
    for signal, match in aggregate.matches().items():
        w = float(weights[signal.value])
        weighted_sum += distance_to_similarity(match.distance) * w
        weight_total += w
    if weight_total == 0:
        return 0.0
    return weighted_sum / weight_total


def score_candidates(
    aggregates: Sequence[CandidateAggregate],
    weights: Mapping[str, float] = config.SIGNAL_WEIGHTS,
) -> List[ScoredCandidate]:
    scored: List[ScoredCandidate] = []
    for a in aggregates:
        try:
            score = weighted_similarity(a, weights)
        except ValueError as e:
            raise ScoringFailure(a.entity_id, str(e)) from e
        scored.append(ScoredCandidate(aggregate=a, weighted_similarity=score))
    return scored


def validate_weights(weights: Mapping[str, float]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for signal in SIGNAL_ORDER:
        if signal.value not in weights:
            raise ValueError(f"Missing weight for signal '{signal.value}'")
        w = float(weights[signal.value])
        if w < 0:
            raise ValueError(f"Weight for '{signal.value}' must be >= 0, got {w}")
        out[signal.value] = w
    return out

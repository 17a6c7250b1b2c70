from __future__ import annotations

"""
Query pipeline for the creator search.

    searching -> fusing -> scoring -> enriching -> reranking -> done
                                                  (any) -> failed

- the three signal searches run concurrently and are awaited as a group
- any failed search aborts the query; partial signal sets are never ranked
- profile misses degrade to default attributes, never abort
- reranking (or the weighted fallback, by config) produces the final order
"""

import asyncio
from enum import Enum
from typing import List, Mapping

from loguru import logger

from . import config
from .config import FindCreatorsResponse
from .errors import CreatorSearchError, SearchFailure
from .mapping import failure_response, map_results_to_response
from .normalize import clean_query
from .pipeline_types import SIGNAL_ORDER, RankedResult, RawSearchHit
from .profiles import enrich_candidates
from .rerank import rank_by_weighted_similarity, rerank_candidates
from .retrieval import fuse_hits, score_candidates, validate_weights


class PipelineState(str, Enum):
    SEARCHING = "searching"
    FUSING = "fusing"
    SCORING = "scoring"
    ENRICHING = "enriching"
    RERANKING = "reranking"
    DONE = "done"
    FAILED = "failed"


class CreatorPipeline:
    """
    One long-lived pipeline per process; clients are injected and shared
    read-only across concurrent queries. Per-query state lives in locals.
    """

    def __init__(
        self,
        search_client,
        profile_store,
        reranker=None,
        *,
        weights: Mapping[str, float] = config.SIGNAL_WEIGHTS,
        k: int = config.SEARCH_K,
        top_k: int = config.RESULT_CAP,
        ranking_mode: str = config.RANKING_MODE,
    ) -> None:
        if ranking_mode not in config.RANKING_MODES:
            raise ValueError(f"Unknown ranking mode '{ranking_mode}'; expected one of {config.RANKING_MODES}")
        if ranking_mode == config.RANKING_MODE_RERANK and reranker is None:
            raise ValueError("ranking_mode='rerank' requires a reranker")
        if k <= 0 or top_k <= 0:
            raise ValueError("k and top_k must be positive")
        self.search_client = search_client
        self.profile_store = profile_store
        self.reranker = reranker
        self.weights = validate_weights(weights)
        self.k = int(k)
        self.top_k = int(top_k)
        self.ranking_mode = ranking_mode

    def _enter(self, state: PipelineState, query: str) -> PipelineState:
        logger.info("pipeline[{}]: {}", query[:60], state.value)
        return state

    async def _search_all(self, query: str) -> List[List[RawSearchHit]]:
        results = await asyncio.gather(
            *(self.search_client.search_signal(signal, query, self.k) for signal in SIGNAL_ORDER)
        )
        errors = [
            f"{signal.label}: {result.error}"
            for signal, result in zip(SIGNAL_ORDER, results)
            if not result.success
        ]
        if errors:
            raise SearchFailure(errors)
        return [list(result.data or []) for result in results]

    async def run(self, query: str) -> List[RankedResult]:
        """Run every stage; raises CreatorSearchError subclasses on failure."""
        self._enter(PipelineState.SEARCHING, query)
        niche, style, audience = await self._search_all(query)

        self._enter(PipelineState.FUSING, query)
        aggregates = fuse_hits(niche, style, audience)

        self._enter(PipelineState.SCORING, query)
        scored = score_candidates(aggregates, self.weights)

        self._enter(PipelineState.ENRICHING, query)
        enriched = await enrich_candidates(scored, self.profile_store)

        self._enter(PipelineState.RERANKING, query)
        if self.ranking_mode == config.RANKING_MODE_WEIGHTED:
            ranked = rank_by_weighted_similarity(enriched, self.top_k)
        else:
            ranked = await rerank_candidates(query, enriched, self.reranker, self.top_k)

        logger.info(
            "find_creators: query='{}' hits={}/{}/{} candidates={} -> {} ranked",
            query[:60], len(niche), len(style), len(audience), len(enriched), len(ranked),
        )
        self._enter(PipelineState.DONE, query)
        return ranked

    async def find_creators(self, query: str) -> FindCreatorsResponse:
        cleaned = clean_query(query)
        if not cleaned:
            return failure_response("Query must be non-empty")
        try:
            ranked = await self.run(cleaned)
        except CreatorSearchError as e:
            self._enter(PipelineState.FAILED, cleaned)
            logger.warning("find_creators failed: {}", e)
            return failure_response(str(e))
        except Exception as e:
            self._enter(PipelineState.FAILED, cleaned)
            logger.exception("find_creators crashed: {}", e)
            return failure_response(f"Unexpected error: {e}")
        return map_results_to_response(ranked)


def find_creators_sync(pipeline: CreatorPipeline, query: str) -> FindCreatorsResponse:
    return asyncio.run(pipeline.find_creators(query))


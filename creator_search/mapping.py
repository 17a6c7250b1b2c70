from __future__ import annotations
"""
Mapping utilities to convert ranked pipeline results into API responses.

Centralises the conversion from RankedResult into the Pydantic schemas
(CreatorItem / FindCreatorsResponse) so the API, the CLI and the pipeline
share one shape.
"""

from typing import List, Sequence

from loguru import logger

from .config import CreatorItem, FindCreatorsResponse
from .pipeline_types import RankedResult, SignalType


def _clip_unit(x: float) -> float:
    return min(1.0, max(0.0, float(x)))


def to_creator_item(result: RankedResult) -> CreatorItem:
    candidate = result.candidate
    profile = candidate.profile
    aggregate = candidate.scored.aggregate
    return CreatorItem(
        id=candidate.entity_id,
        creatorName=profile.creator_name,
        handle=profile.handle,
        platformId=profile.platform_id,
        followersCount=max(0, int(profile.followers_count)),
        profileImage=profile.profile_image,
        nicheSummary=aggregate.summary(SignalType.NICHE),
        styleSummary=aggregate.summary(SignalType.STYLE),
        audienceSummary=aggregate.summary(SignalType.AUDIENCE),
        weightedSimilarity=_clip_unit(candidate.weighted_similarity),
        relevanceScore=float(result.relevance_score),
    )


def map_results_to_response(results: Sequence[RankedResult]) -> FindCreatorsResponse:
    items: List[CreatorItem] = [to_creator_item(r) for r in results]
    logger.info("Mapped {} creators into API schema", len(items))
    return FindCreatorsResponse(success=True, creators=items)


def failure_response(error: str) -> FindCreatorsResponse:
    return FindCreatorsResponse(success=False, error=error, creators=[])

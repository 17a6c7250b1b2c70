from creator_search.mapping import failure_response, map_results_to_response, to_creator_item
from creator_search.pipeline_types import (
    CandidateAggregate,
    EnrichedCandidate,
    ProfileRecord,
    RankedResult,
    ScoredCandidate,
    SignalMatch,
)


def _ranked(entity_id, relevance, weighted=0.6, profile=None):
    agg = CandidateAggregate(
        entity_id=entity_id,
        niche=SignalMatch("street food reviews", 0.3),
        audience=SignalMatch("young urban foodies", 0.6),
    )
    cand = EnrichedCandidate(
        scored=ScoredCandidate(aggregate=agg, weighted_similarity=weighted),
        profile=profile or ProfileRecord(),
    )
    return RankedResult(candidate=cand, relevance_score=relevance)


def test_to_creator_item_copies_profile_and_summaries():
    profile = ProfileRecord("Mia", "@mia.eats", "tt-9", 88000, "https://img/mia")
    item = to_creator_item(_ranked("m1", 0.77, profile=profile))

    assert item.id == "m1"
    assert item.creatorName == "Mia"
    assert item.handle == "@mia.eats"
    assert item.followersCount == 88000
    assert item.nicheSummary == "street food reviews"
    assert item.styleSummary is None
    assert item.audienceSummary == "young urban foodies"
    assert item.relevanceScore == 0.77
    assert item.weightedSimilarity == 0.6


def test_map_results_preserves_ranked_order():
    resp = map_results_to_response([_ranked("a", 0.9), _ranked("b", 0.5)])
    assert resp.success is True
    assert [c.id for c in resp.creators] == ["a", "b"]
    assert resp.error is None


def test_failure_response_is_tagged_and_empty():
    resp = failure_response("Failed to rerank documents: boom")
    assert resp.success is False
    assert resp.creators == []
    assert resp.error == "Failed to rerank documents: boom"

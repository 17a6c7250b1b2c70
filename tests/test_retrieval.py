import asyncio

import pytest

from creator_search.pipeline_types import CandidateAggregate, RawSearchHit, SignalMatch, SignalType
from creator_search.retrieval import (
    SimilaritySearchClient,
    distance_to_similarity,
    format_query_result,
    fuse_hits,
    score_candidates,
    validate_weights,
    weighted_similarity,
)

WEIGHTS = {"niche": 0.40, "style": 0.35, "audience": 0.25}


def hit(signal, entity_id, distance, document=None):
    return RawSearchHit(
        signal=signal,
        id=f"{signal.value}-{entity_id}",
        distance=distance,
        document=document or f"{signal.value} summary for {entity_id}",
        entity_id=entity_id,
    )


class FakeCollection:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def query(self, query_texts, n_results, include):
        self.calls.append((query_texts, n_results))
        if self.error is not None:
            raise self.error
        return self.result


class FakeChroma:
    def __init__(self, collections):
        self.collections = collections

    def get_collection(self, name):
        return self.collections[name]


def test_distance_to_similarity_bounds_and_monotonicity():
    assert distance_to_similarity(0) == 1.0
    prev = 1.0
    for d in [0.01, 0.1, 0.5, 1.0, 2.0, 10.0, 1e6]:
        s = distance_to_similarity(d)
        assert 0 < s <= 1
        assert s < prev
        prev = s


def test_distance_to_similarity_rejects_negative():
    with pytest.raises(ValueError):
        distance_to_similarity(-0.1)


def test_format_query_result_uses_first_row_and_social_id():
    raw = {
        "ids": [["a", "b", "c"]],
        "distances": [[0.1, 0.2, 0.3]],
        "documents": [["doc a", None, "doc c"]],
        "metadatas": [[{"socialId": "s1"}, {"socialId": "s2"}, {}]],
    }
    hits = format_query_result(raw, SignalType.STYLE)

    # row without socialId is skipped
    assert [h.entity_id for h in hits] == ["s1", "s2"]
    assert hits[0].signal is SignalType.STYLE
    assert hits[1].document is None
    assert hits[1].distance == pytest.approx(0.2)


def test_fuse_hits_collapses_entities_across_signals():
    niche = [hit(SignalType.NICHE, "x", 0.1), hit(SignalType.NICHE, "y", 0.2)]
    style = [hit(SignalType.STYLE, "x", 0.5)]
    audience = [hit(SignalType.AUDIENCE, "x", 0.3), hit(SignalType.AUDIENCE, "z", 0.9)]

    fused = {a.entity_id: a for a in fuse_hits(niche, style, audience)}

    assert set(fused) == {"x", "y", "z"}
    assert fused["x"].niche.distance == pytest.approx(0.1)
    assert fused["x"].style.distance == pytest.approx(0.5)
    assert fused["x"].audience.distance == pytest.approx(0.3)
    assert fused["y"].style is None and fused["y"].audience is None
    assert fused["z"].niche is None


def test_fuse_hits_is_idempotent_and_keeps_first_hit_per_slot():
    niche = [hit(SignalType.NICHE, "x", 0.1, "first"), hit(SignalType.NICHE, "x", 0.7, "second")]
    style = [hit(SignalType.STYLE, "x", 0.4)]
    audience = [hit(SignalType.AUDIENCE, "x", 0.2)]

    once = fuse_hits(niche, style, audience)
    twice = fuse_hits(niche, style, audience)

    assert len(once) == 1
    assert once == twice
    assert once[0].niche == SignalMatch(document="first", distance=0.1)


def test_fuse_hits_never_invents_entities():
    assert fuse_hits([], [], []) == []
    fused = fuse_hits([hit(SignalType.NICHE, "only", 0.3)], [], [])
    assert [a.entity_id for a in fused] == ["only"]


def test_weighted_similarity_renormalises_over_present_signals():
    # niche 0.1 + style 0.5, no audience
    agg = CandidateAggregate(
        entity_id="x",
        niche=SignalMatch("n", 0.1),
        style=SignalMatch("s", 0.5),
    )
    expected = ((1 / 1.1) * 0.40 + (1 / 1.5) * 0.35) / 0.75
    assert weighted_similarity(agg, WEIGHTS) == pytest.approx(expected)


def test_single_signal_distance_zero_scores_one():
    agg = CandidateAggregate(entity_id="x", niche=SignalMatch("n", 0.0))
    assert weighted_similarity(agg, WEIGHTS) == 1.0


def test_weighted_similarity_bounded():
    for d1, d2, d3 in [(0, 0, 0), (0.3, 5.0, 100.0), (2.0, 0.0, 0.7)]:
        agg = CandidateAggregate(
            entity_id="x",
            niche=SignalMatch(None, d1),
            style=SignalMatch(None, d2),
            audience=SignalMatch(None, d3),
        )
        assert 0 <= weighted_similarity(agg, WEIGHTS) <= 1


def test_weighted_similarity_zero_without_signals():
    assert weighted_similarity(CandidateAggregate(entity_id="ghost"), WEIGHTS) == 0.0


def test_score_candidates_keeps_aggregates():
    aggs = fuse_hits([hit(SignalType.NICHE, "a", 0.0)], [hit(SignalType.STYLE, "b", 1.0)], [])
    scored = {s.entity_id: s for s in score_candidates(aggs, WEIGHTS)}
    assert scored["a"].weighted_similarity == 1.0
    assert scored["b"].weighted_similarity == pytest.approx(0.5)


def test_validate_weights_requires_all_signals():
    with pytest.raises(ValueError):
        validate_weights({"niche": 0.5, "style": 0.5})
    with pytest.raises(ValueError):
        validate_weights({"niche": -1, "style": 0.5, "audience": 0.5})


def test_search_client_wraps_results_and_requests_k():
    coll = FakeCollection(
        result={
            "ids": [["h1"]],
            "distances": [[0.25]],
            "documents": [["travel vlogs"]],
            "metadatas": [[{"socialId": "s1"}]],
        }
    )
    client = SimilaritySearchClient(FakeChroma({"niche-summaries": coll}))

    result = asyncio.run(client.search_signal(SignalType.NICHE, "travel", k=10))

    assert result.success
    assert coll.calls == [(["travel"], 10)]
    assert result.data[0].entity_id == "s1"
    assert result.data[0].signal is SignalType.NICHE


def test_search_client_never_raises_on_backend_failure():
    coll = FakeCollection(error=RuntimeError("connection refused"))
    client = SimilaritySearchClient(FakeChroma({"style-summaries": coll}))

    result = asyncio.run(client.search("style-summaries", "anything", 10))

    assert not result.success
    assert "connection refused" in result.error


def test_search_client_fails_for_unknown_collection():
    client = SimilaritySearchClient(FakeChroma({}))

    result = asyncio.run(client.search("other-collection", "q", 10))

    assert not result.success
    assert "other-collection" in result.error


def test_search_client_fails_for_unconfigured_signal():
    client = SimilaritySearchClient(FakeChroma({}), collections={SignalType.NICHE: "niche-summaries"})

    result = asyncio.run(client.search_signal(SignalType.AUDIENCE, "q", 10))

    assert not result.success
    assert "audience" in result.error


@pytest.mark.parametrize(
    "distances",
    [[[None]], [[]], [[-0.2]]],
    ids=["missing-distance", "ragged-row", "negative-distance"],
)
def test_search_client_fails_on_malformed_query_result(distances):
    coll = FakeCollection(
        result={
            "ids": [["h1"]],
            "distances": distances,
            "documents": [["travel vlogs"]],
            "metadatas": [[{"socialId": "s1"}]],
        }
    )
    client = SimilaritySearchClient(FakeChroma({"niche-summaries": coll}))

    result = asyncio.run(client.search_signal(SignalType.NICHE, "travel", k=10))

    assert not result.success
    assert result.error


def test_score_candidates_tags_out_of_range_distance():
    from creator_search.errors import CreatorSearchError

    aggs = fuse_hits([hit(SignalType.NICHE, "neg", -0.2)], [], [])
    with pytest.raises(CreatorSearchError) as exc:
        score_candidates(aggs, WEIGHTS)
    assert "neg" in str(exc.value)

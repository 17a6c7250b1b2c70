import json

from creator_search import cli
from creator_search.pipeline import CreatorPipeline
from creator_search.pipeline_types import ProfileRecord, RawSearchHit, Result, SignalType


class OneHitSearch:
    async def search_signal(self, signal, query, k=10):
        if signal is SignalType.NICHE:
            return Result.ok([RawSearchHit(signal, "h1", 0.0, "retro gaming", "g1")])
        return Result.ok([])


class OneProfile:
    async def get_profile(self, entity_id):
        return ProfileRecord(creator_name="Gus", handle="@gus")


def test_cli_prints_json_and_exit_code(monkeypatch, capsys):
    def fake_build(args):
        assert args.mode == "weighted"
        assert args.top_k == 3
        return CreatorPipeline(OneHitSearch(), OneProfile(), None, ranking_mode=args.mode, top_k=args.top_k)

    monkeypatch.setattr(cli, "build_pipeline", fake_build)

    code = cli.main(["retro gamers", "--mode", "weighted", "--top-k", "3", "--quiet"])

    out = json.loads(capsys.readouterr().out)
    assert code == 0
    assert out["success"] is True
    assert out["creators"][0]["_id"] == "g1"
    assert out["creators"][0]["creatorName"] == "Gus"

# creator_search/cli.py
from __future__ import annotations

import argparse
import sys

from loguru import logger

from . import config
from ._singletons import build_reranker, get_profile_store, get_search_client
from .pipeline import CreatorPipeline, find_creators_sync


def build_pipeline(args) -> CreatorPipeline:
    reranker = build_reranker() if args.mode == config.RANKING_MODE_RERANK else None
    return CreatorPipeline(
        get_search_client(),
        get_profile_store(),
        reranker,
        k=args.k,
        top_k=args.top_k,
        ranking_mode=args.mode,
    )


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Find creators matching a free-text query.")
    ap.add_argument("query", help="what kind of creator you are looking for")
    ap.add_argument("--mode", choices=config.RANKING_MODES, default=config.RANKING_MODE)
    ap.add_argument("--k", type=int, default=config.SEARCH_K, help="neighbours per signal search")
    ap.add_argument("--top-k", dest="top_k", type=int, default=config.RESULT_CAP, help="result cap")
    ap.add_argument("--quiet", action="store_true", help="only print the JSON response")
    args = ap.parse_args(argv)

    if args.quiet:
        logger.remove()
        logger.add(sys.stderr, level="WARNING")

    response = find_creators_sync(build_pipeline(args), args.query)
    print(response.model_dump_json(by_alias=True, indent=2))
    return 0 if response.success else 1


if __name__ == "__main__":
    sys.exit(main())

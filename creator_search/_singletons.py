# creator_search/_singletons.py
from functools import lru_cache

from loguru import logger

from . import config
from .pipeline import CreatorPipeline
from .profiles import MongoProfileStore, SnapshotProfileStore
from .rerank import CrossEncoderReranker, VoyageReranker
from .retrieval import SimilaritySearchClient, connect_chroma


@lru_cache(maxsize=1)
def get_search_client() -> SimilaritySearchClient:
    return SimilaritySearchClient(connect_chroma())


@lru_cache(maxsize=1)
def get_profile_store():
    if config.MONGODB_URI:
        return MongoProfileStore.connect(config.MONGODB_URI)
    return SnapshotProfileStore.from_path(config.PROFILE_SNAPSHOT_PATH)


def build_reranker(backend: str = config.RERANK_BACKEND):
    if backend == config.RERANK_BACKEND_CROSS_ENCODER:
        return CrossEncoderReranker()
    if not config.VOYAGE_API_KEY:
        logger.warning("VOYAGEAI_API_KEY is not set; rerank calls will be rejected")
    return VoyageReranker(config.VOYAGE_API_KEY)


@lru_cache(maxsize=1)
def get_reranker():
    if config.RANKING_MODE == config.RANKING_MODE_WEIGHTED:
        return None
    return build_reranker()


@lru_cache(maxsize=1)
def get_pipeline() -> CreatorPipeline:
    return CreatorPipeline(get_search_client(), get_profile_store(), get_reranker())

# creator_search/rerank.py
from __future__ import annotations

import asyncio
import json
import re
import threading
from typing import List, Optional, Sequence

import httpx
import numpy as np
from loguru import logger

from . import config
from .errors import RerankFailure
from .normalize import single_line
from .pipeline_types import EnrichedCandidate, RankedResult, RerankHit, Result, SignalType

RerankResult = Result[List[RerankHit]]


# ---------------------------------------------------------------------------
# Candidate documents
# ---------------------------------------------------------------------------

_NEEDS_QUOTES_RE = re.compile(r'^(?:true|false|null|-?\d+(?:\.\d+)?(?:e[+-]?\d+)?)$|[:"\\\[\]{}]|^-|^\s|\s$', re.I)


def _doc_value(value: str) -> str:
    if value == "" or _NEEDS_QUOTES_RE.search(value):
        return json.dumps(value, ensure_ascii=False)
    return value


def build_candidate_document(candidate: EnrichedCandidate) -> str:
    """
    Compact ``key: value`` text for the cross-encoder.
    Only fields that carry meaning for the query go in: name, handle and the
    three summaries. Scores and ids stay out of the text.
    """
    aggregate = candidate.scored.aggregate
    fields = [
        ("creatorName", candidate.profile.creator_name),
        ("handle", candidate.profile.handle),
        ("nicheSummary", single_line(aggregate.summary(SignalType.NICHE))),
        ("styleSummary", single_line(aggregate.summary(SignalType.STYLE))),
        ("audienceSummary", single_line(aggregate.summary(SignalType.AUDIENCE))),
    ]
    return "\n".join(f"{key}: {_doc_value(val)}" for key, val in fields if val is not None)


# ---------------------------------------------------------------------------
# Rerank backends
# ---------------------------------------------------------------------------

class VoyageReranker:
    """Hosted cross-encoder: POST {base_url}/rerank."""

    RERANK_ENDPOINT = "/rerank"

    def __init__(
        self,
        api_key: Optional[str] = config.VOYAGE_API_KEY,
        *,
        model: str = config.VOYAGE_RERANK_MODEL,
        base_url: str = config.VOYAGE_API_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._headers = {"content-type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.HTTP_READ_TIMEOUT, connect=config.HTTP_CONNECT_TIMEOUT),
        )

    @property
    def model(self) -> str:
        return self._model

    async def aclose(self) -> None:
        await self._client.aclose()

    async def rerank(self, documents: Sequence[str], query: str, top_k: int = 10) -> RerankResult:
        payload = {
            "query": query,
            "documents": list(documents),
            "model": self._model,
            "top_k": int(top_k),
        }
        try:
            r = await self._client.post(f"{self._base_url}{self.RERANK_ENDPOINT}", json=payload, headers=self._headers)
            if r.status_code >= 400:
                logger.warning("Voyage rerank: HTTP {} ({})", r.status_code, r.text[:200])
                return Result.fail(f"Voyage rerank rejected request ({r.status_code}): {r.text[:200]}")
            body = r.json()
            hits = [
                RerankHit(index=int(row["index"]), relevance_score=float(row["relevance_score"]))
                for row in body.get("data") or []
            ]
        except httpx.TimeoutException as e:
            logger.warning("Voyage rerank timeout: {}", e)
            return Result.fail(f"Voyage rerank timed out: {e}")
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Voyage rerank exception: {}", e)
            return Result.fail(str(e) or repr(e))
        return Result.ok(hits)


class CrossEncoderReranker:
    """
    Local sentence-transformers CrossEncoder with the same rerank contract.
    The model loads on first use; candidates are tried in order.
    """

    def __init__(
        self,
        model=None,
        candidates: Sequence[str] = tuple(config.CROSS_ENCODER_CANDIDATES),
        cache_folder: Optional[str] = config.HF_ENV_VARS["HF_HUB_CACHE"],
    ) -> None:
        self._model = model
        self._candidates = list(candidates)
        self._cache_folder = cache_folder
        # concurrent first queries share one load
        self._load_lock = threading.Lock()

    def load(self):
        if self._model is not None:
            return self._model
        with self._load_lock:
            if self._model is not None:
                return self._model
            try:
                from sentence_transformers import CrossEncoder
            except ImportError as e:
                logger.warning("sentence_transformers not available: {}", e)
                return None
            for rid in self._candidates:
                try:
                    logger.info("Loading cross-encoder reranker: {}", rid)
                    self._model = CrossEncoder(rid, device="cpu", cache_folder=self._cache_folder)
                    logger.info("Loaded cross-encoder reranker: {}", rid)
                    return self._model
                except Exception as e:
                    logger.warning("Failed to load CrossEncoder '{}': {}", rid, e)
            return None

    def score(self, query: str, documents: Sequence[str]) -> np.ndarray:
        model = self.load()
        if model is None:
            raise RuntimeError("No cross-encoder model could be loaded")
        if not documents:
            return np.zeros((0,), dtype="float32")
        pairs = [(query, d) for d in documents]
        return np.asarray(model.predict(pairs), dtype="float32")

    async def rerank(self, documents: Sequence[str], query: str, top_k: int = 10) -> RerankResult:
        try:
            scores = await asyncio.to_thread(self.score, query, documents)
        except Exception as e:
            logger.warning("Cross-encoder rerank failed: {}", e)
            return Result.fail(str(e) or repr(e))
        order = np.argsort(-scores, kind="stable")[: max(int(top_k), 0)]
        return Result.ok([RerankHit(index=int(i), relevance_score=float(scores[i])) for i in order])


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

def _sort_key(r: RankedResult):
    # relevance desc, then weighted similarity desc, then id for determinism
    return (-r.relevance_score, -r.candidate.weighted_similarity, r.candidate.entity_id)


async def rerank_candidates(
    query: str,
    candidates: Sequence[EnrichedCandidate],
    reranker,
    top_k: int = config.RESULT_CAP,
) -> List[RankedResult]:
    """
    Submit every enriched candidate to the reranker and map the returned
    indices back. Raises RerankFailure when the service call fails.
    """
    if not candidates:
        return []

    documents = [build_candidate_document(c) for c in candidates]
    result = await reranker.rerank(documents, query, top_k)
    if not result.success:
        raise RerankFailure(result.error or "unknown error")

    ranked: List[RankedResult] = []
    seen = set()
    for hit in result.data or []:
        if not 0 <= hit.index < len(candidates) or hit.index in seen:
            logger.warning("Reranker returned unusable index {} ({} documents)", hit.index, len(candidates))
            continue
        seen.add(hit.index)
        ranked.append(RankedResult(candidate=candidates[hit.index], relevance_score=hit.relevance_score))

    ranked.sort(key=_sort_key)
    logger.info("Reranked {} candidates -> {} results", len(candidates), len(ranked[:top_k]))
    return ranked[:top_k]


def rank_by_weighted_similarity(
    candidates: Sequence[EnrichedCandidate],
    top_k: int = config.RESULT_CAP,
) -> List[RankedResult]:
    """Rerank-free ordering: weighted similarity becomes the relevance score."""
    ranked = [RankedResult(candidate=c, relevance_score=c.weighted_similarity) for c in candidates]
    ranked.sort(key=_sort_key)
    return ranked[:top_k]

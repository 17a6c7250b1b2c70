from __future__ import annotations

"""
FastAPI application for the creator search.

- POST /creators/search runs the three-signal search -> fuse -> score ->
  enrich -> rerank pipeline and returns the tagged result
- failures come back as 200 with success=false; only malformed input is a 4xx
"""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import FindCreatorsRequest, FindCreatorsResponse, HealthResponse
from ._singletons import get_pipeline


# -----------------------
# FastAPI app + startup
# -----------------------

app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_pipeline = None


@app.on_event("startup")
def startup_event() -> None:
    global _pipeline
    logger.info("Starting app warmup...")
    try:
        _pipeline = get_pipeline()
    except Exception as e:
        _pipeline = None
        logger.error("Failed to build search pipeline: {}", e)
        return
    logger.info(
        "Warmup complete (mode={}, k={}, top_k={}).",
        _pipeline.ranking_mode, _pipeline.k, _pipeline.top_k,
    )


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="healthy")


@app.post("/creators/search", response_model=FindCreatorsResponse, response_model_by_alias=True)
async def search_creators(req: FindCreatorsRequest) -> FindCreatorsResponse:
    query = req.query.strip()
    if not query:
        raise HTTPException(status_code=422, detail="Query must be non-empty")
    if _pipeline is None:
        raise HTTPException(status_code=500, detail="Search pipeline not initialised")
    return await _pipeline.find_creators(query)

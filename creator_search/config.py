from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------
# Paths
# ---------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / "data"
MODELS_DIR = PROJECT_ROOT / "models"  # HF cache for the local cross-encoder

# Optional local profile snapshot (parquet or csv). Used when no MONGODB_URI is set.
PROFILE_SNAPSHOT_PATH = Path(
    os.getenv("PROFILE_SNAPSHOT_PATH", str(DATA_DIR / "socials_snapshot.parquet"))
)


# ---------------------------
# Signals & vector collections
# ---------------------------

NICHE_COLLECTION = os.getenv("NICHE_COLLECTION", "niche-summaries")
STYLE_COLLECTION = os.getenv("STYLE_COLLECTION", "style-summaries")
AUDIENCE_COLLECTION = os.getenv("AUDIENCE_COLLECTION", "target-audience-summaries")

# metadata key on every indexed summary that points back to the profile record
ENTITY_ID_METADATA_KEY = "socialId"

CHROMA_HOST = os.getenv("CHROMA_HOST")  # unset -> Chroma Cloud
CHROMA_PORT = int(os.getenv("CHROMA_PORT", "8000"))
CHROMA_API_KEY = os.getenv("CHROMA_API_KEY")
CHROMA_TENANT = os.getenv("CHROMA_TENANT_ID")
CHROMA_DATABASE = os.getenv("CHROMA_DATABASE", "creator-embeddings")


# ---------------------------
# Retrieval & fusion settings
# ---------------------------

SEARCH_K = int(os.getenv("SEARCH_K", "10"))  # neighbours per signal

NICHE_WEIGHT = float(os.getenv("NICHE_WEIGHT", "0.40"))
STYLE_WEIGHT = float(os.getenv("STYLE_WEIGHT", "0.35"))
AUDIENCE_WEIGHT = float(os.getenv("AUDIENCE_WEIGHT", "0.25"))

SIGNAL_WEIGHTS: Dict[str, float] = {
    "niche": NICHE_WEIGHT,
    "style": STYLE_WEIGHT,
    "audience": AUDIENCE_WEIGHT,
}


# ---------------------------
# Result size & ranking policy
# ---------------------------

RESULT_CAP = int(os.getenv("RESULT_CAP", "6"))

RANKING_MODE_RERANK = "rerank"
RANKING_MODE_WEIGHTED = "weighted"
RANKING_MODES = (RANKING_MODE_RERANK, RANKING_MODE_WEIGHTED)
RANKING_MODE = os.getenv("RANKING_MODE", RANKING_MODE_RERANK)


# ---------------------------
# Rerank settings & env toggles
# ---------------------------

RERANK_BACKEND_VOYAGE = "voyage"
RERANK_BACKEND_CROSS_ENCODER = "cross-encoder"
RERANK_BACKEND = os.getenv("RERANK_BACKEND", RERANK_BACKEND_VOYAGE)

VOYAGE_API_KEY = os.getenv("VOYAGEAI_API_KEY") or os.getenv("VOYAGE_API_KEY")
VOYAGE_API_BASE_URL = os.getenv("VOYAGE_API_BASE_URL", "https://api.voyageai.com/v1")
VOYAGE_RERANK_MODEL = os.getenv("VOYAGE_RERANK_MODEL", "rerank-2.5")

# Local cross-encoder, tried in order
CROSS_ENCODER_CANDIDATES: List[str] = [
    "BAAI/bge-reranker-base",
    "cross-encoder/ms-marco-MiniLM-L-6-v2",
]

HF_ENV_VARS = {
    "HF_HUB_CACHE": os.getenv("HF_HUB_CACHE", str(MODELS_DIR)),
}


# ---------------------------
# Profile store
# ---------------------------

MONGODB_URI = os.getenv("MONGODB_URI")
MONGODB_DATABASE = os.getenv("MONGODB_DATABASE", "test")
PROFILE_COLLECTION = os.getenv("PROFILE_COLLECTION", "socials")
MONGODB_SERVER_SELECTION_TIMEOUT_MS = 5000


# ---------------------------
# Text processing
# ---------------------------

MAX_INPUT_CHARS = 2_000  # query size cap


# ---------------------------
# HTTP hardening
# ---------------------------

HTTP_CONNECT_TIMEOUT = 3.0
HTTP_READ_TIMEOUT = float(os.getenv("VOYAGE_TIMEOUT", "30"))


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class CreatorItem(BaseModel):
    """
    Canonical schema for a single ranked creator.
    Field names match the payload consumed by the chat tool and the UI cards.
    """

    id: str = Field(alias="_id")
    creatorName: str = ""
    handle: str = ""
    platformId: str = ""
    followersCount: int = Field(default=0, ge=0)
    profileImage: str = ""
    nicheSummary: Optional[str] = None
    styleSummary: Optional[str] = None
    audienceSummary: Optional[str] = None
    weightedSimilarity: float = Field(ge=0.0, le=1.0)
    relevanceScore: float

    model_config = {"populate_by_name": True}


class FindCreatorsResponse(BaseModel):
    """
    Tagged result of one query. Callers must check ``success``:
    an empty ``creators`` list alone does not mean "no matches".
    """

    success: bool
    creators: List[CreatorItem] = Field(default_factory=list)
    error: Optional[str] = None


class FindCreatorsRequest(BaseModel):
    query: str = Field(..., min_length=1)


class HealthResponse(BaseModel):
    """
    Response body for GET /health.
    """

    status: str

from __future__ import annotations

"""
Profile lookup and candidate enrichment.

Two stores share the ``get_profile(entity_id)`` contract:

* MongoProfileStore     - the ``socials`` collection behind the live app
* SnapshotProfileStore  - a parquet/csv export of the same collection, indexed by ``_id``

A missing profile (or a store error) never drops a candidate: the candidate
keeps its scores and gets empty/zero display attributes.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd
from loguru import logger

from . import config
from .pipeline_types import EnrichedCandidate, ProfileRecord, ScoredCandidate

PROFILE_COLUMNS = ["_id", "creatorName", "handle", "platformId", "followersCount", "profileImage"]


def _coerce_int(val, default: int = 0) -> int:
    try:
        if val is None:
            return default
        if isinstance(val, float) and pd.isna(val):
            return default
        s = str(val).strip()
        return int(float(s)) if s else default
    except Exception:
        return default


def _coerce_str(val) -> str:
    if val is None:
        return ""
    if isinstance(val, float) and pd.isna(val):
        return ""
    return str(val).strip()


def profile_from_document(doc: Mapping[str, Any]) -> ProfileRecord:
    """Build a ProfileRecord from a stored document/row, tolerating gaps."""
    return ProfileRecord(
        creator_name=_coerce_str(doc.get("creatorName")),
        handle=_coerce_str(doc.get("handle")),
        platform_id=_coerce_str(doc.get("platformId")),
        followers_count=_coerce_int(doc.get("followersCount")),
        profile_image=_coerce_str(doc.get("profileImage")),
    )


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class MongoProfileStore:
    """Async lookup by ``_id`` in the socials collection."""

    def __init__(self, collection) -> None:
        self._collection = collection

    @classmethod
    def connect(
        cls,
        uri: str,
        database: str = config.MONGODB_DATABASE,
        collection: str = config.PROFILE_COLLECTION,
    ) -> "MongoProfileStore":
        from pymongo import AsyncMongoClient

        client = AsyncMongoClient(uri, serverSelectionTimeoutMS=config.MONGODB_SERVER_SELECTION_TIMEOUT_MS)
        logger.info("Profile store: mongo {}.{}", database, collection)
        return cls(client[database][collection])

    @staticmethod
    def _key(entity_id: str):
        from bson import ObjectId

        return ObjectId(entity_id) if ObjectId.is_valid(entity_id) else entity_id

    async def get_profile(self, entity_id: str) -> Optional[ProfileRecord]:
        doc = await self._collection.find_one({"_id": self._key(entity_id)})
        if doc is None:
            return None
        return profile_from_document(doc)


class SnapshotProfileStore:
    """In-memory lookup over a DataFrame export of the socials collection."""

    def __init__(self, df: pd.DataFrame) -> None:
        if "_id" not in df.columns:
            raise KeyError("Profile snapshot must contain an '_id' column.")
        df = df.copy()
        df["_id"] = df["_id"].astype(str)
        self._by_id: Dict[str, Dict[str, Any]] = {
            row["_id"]: row for row in df.to_dict(orient="records")
        }

    @classmethod
    def from_path(cls, path: Path = config.PROFILE_SNAPSHOT_PATH) -> "SnapshotProfileStore":
        logger.info("Loading profile snapshot from {}", path)
        if path.suffix.lower() == ".csv":
            df = pd.read_csv(path, encoding="utf-8")
        else:
            df = pd.read_parquet(path)
        logger.info("Loaded profile snapshot with {} rows", len(df))
        return cls(df)

    def __len__(self) -> int:
        return len(self._by_id)

    async def get_profile(self, entity_id: str) -> Optional[ProfileRecord]:
        row = self._by_id.get(str(entity_id))
        if row is None:
            return None
        return profile_from_document(row)


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------

async def enrich(candidate: ScoredCandidate, store) -> EnrichedCandidate:
    try:
        profile = await store.get_profile(candidate.entity_id)
    except Exception as e:
        logger.warning("Profile lookup failed for {}; using defaults: {}", candidate.entity_id, e)
        profile = None
    if profile is None:
        logger.info("No profile for {}; using defaults", candidate.entity_id)
        profile = ProfileRecord()
    return EnrichedCandidate(scored=candidate, profile=profile)


async def enrich_candidates(candidates: Sequence[ScoredCandidate], store) -> List[EnrichedCandidate]:
    """Look up every candidate concurrently; output order matches input order."""
    return list(await asyncio.gather(*(enrich(c, store) for c in candidates)))

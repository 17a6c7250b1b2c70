"""Failure types raised between pipeline stages.

Client boundaries (search, profile lookup, rerank) never raise for backend
problems; they return tagged results. The pipeline turns failed results into
one of these exceptions, and ``find_creators`` turns the exception into the
tagged failure response.
"""

from __future__ import annotations

from typing import List


class CreatorSearchError(Exception):
    """Base class for failures that abort a query."""


class SearchFailure(CreatorSearchError):
    """One or more of the signal searches failed."""

    def __init__(self, messages: List[str]):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class RerankFailure(CreatorSearchError):
    """The reranking service call failed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to rerank documents: {reason}")


class ScoringFailure(CreatorSearchError):
    """A fused candidate could not be scored (e.g. an out-of-range distance)."""

    def __init__(self, entity_id: str, reason: str):
        self.entity_id = entity_id
        super().__init__(f"Failed to score creator {entity_id}: {reason}")

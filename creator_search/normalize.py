from __future__ import annotations

"""
Text normalisation helpers shared by the query path and rerank documents.

Public helpers:

* clean_query(text) -> str
    Whitespace-collapsed, stripped, length-capped query sent to every backend.

* single_line(text) -> str | None
    Flattens a stored summary so it fits on one ``key: value`` line.
"""

import re
import unicodedata
from typing import Optional

from . import config

_WS_RE = re.compile(r"\s+")


def basic_clean(text: str) -> str:
    """
    Light clean: unicode NFKC, drop control chars, collapse whitespace.
    """
    if not text:
        return ""
    text = unicodedata.normalize("NFKC", str(text))
    text = "".join(ch for ch in text if ch in "\n\t" or unicodedata.category(ch)[0] != "C")
    return _WS_RE.sub(" ", text).strip()


def clean_query(text: str, max_chars: int = config.MAX_INPUT_CHARS) -> str:
    cleaned = basic_clean(text or "")
    if len(cleaned) > max_chars:
        cleaned = cleaned[:max_chars].rstrip()
    return cleaned


def single_line(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    flat = basic_clean(text)
    return flat or None

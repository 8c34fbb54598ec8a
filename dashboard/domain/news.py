from __future__ import annotations

import re
from typing import Any, Optional

from ..core.errors import UpstreamError
from .models import NewsArticle

UNTITLED = "Sans titre"

_BRACKETED = re.compile(r"\s*\[.*?\]\s*")

DEFAULT_TYPE = "news"

# dashboard news type -> newsdata.io query parameters (besides the API key)
NEWS_TYPES: dict[str, dict[str, str]] = {
    "news": {"country": "fr", "language": "fr", "category": "top"},
    "tech": {"category": "Technology", "language": "fr"},
    "crime": {"category": "Crime", "language": "fr"},
    "entertainment": {"category": "Entertainment", "language": "fr"},
    "lifestyle": {"category": "Lifestyle", "language": "fr"},
    "world": {"category": "World", "language": "fr"},
    "domestic": {"category": "Domestic", "language": "fr"},
    "education": {"category": "Education", "language": "fr"},
    "environment": {"category": "Environment", "language": "fr"},
    "health": {"category": "Health", "language": "fr"},
    "politics": {"category": "Politics", "language": "fr"},
    "tourism": {"category": "Tourism", "language": "fr"},
}


def resolve_type(news_type: Optional[str]) -> str:
    return news_type if news_type in NEWS_TYPES else DEFAULT_TYPE


def clean_title(title: str) -> str:
    """Drop bracketed tags such as ``[VIDEO]``."""
    return _BRACKETED.sub(" ", title).strip()


def _author(creator: Any) -> Optional[str]:
    if isinstance(creator, list):
        return str(creator[0]) if creator else None
    return creator or None


def to_article(raw: dict[str, Any], fallback_date: str) -> Optional[NewsArticle]:
    title = raw.get("title") or UNTITLED
    cleaned = clean_title(raw.get("title") or "") or UNTITLED
    if cleaned == UNTITLED:
        return None
    return NewsArticle(
        title=title,
        clean_title=cleaned,
        description=raw.get("description") or "",
        source=raw.get("source_name") or raw.get("source_id") or "Source inconnue",
        url=raw.get("link") or "",
        url_to_image=raw.get("image_url") or None,
        author=_author(raw.get("creator")),
        content=raw.get("content") or None,
        published_at=raw.get("pubDate") or fallback_date,
    )


def parse_latest(payload: Any, now_iso: str) -> dict[str, Any]:
    if not isinstance(payload, dict) or payload.get("status") != "success":
        status = payload.get("status") if isinstance(payload, dict) else None
        message = payload.get("message") if isinstance(payload, dict) else None
        detail = f" - {message}" if message else ""
        raise UpstreamError(f"NewsData API returned invalid status: {status}{detail}")

    articles = []
    for raw in payload.get("results") or []:
        if not isinstance(raw, dict):
            continue
        article = to_article(raw, now_iso)
        if article is not None:
            articles.append(article)

    return {
        "articles": [a.to_dict() for a in articles],
        "totalResults": payload.get("totalResults") or len(articles),
        "lastUpdate": now_iso,
    }

"""Shared RSS parsing for feed-based sources (CDC advisories, EPA news)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import feedparser

from regfeed.core.logging import get_logger
from regfeed.extract.dates import parse_datetime

log = get_logger("ingestion.rss")


def parse_feed(text: str) -> List[Dict[str, Any]]:
    """Parse an RSS/Atom document into plain item dicts.

    Items without a title or a publication date are dropped. Values are
    plain strings so the dicts can be stored as raw payloads.
    """
    feed = feedparser.parse(text)
    if feed.bozo and not feed.entries:
        raise ValueError(f"unparseable feed: {feed.get('bozo_exception')!r}")

    items: List[Dict[str, Any]] = []
    for entry in feed.entries:
        item = _entry_to_item(entry)
        if item is not None:
            items.append(item)
    return items


def _entry_to_item(entry: Any) -> Optional[Dict[str, Any]]:
    title = (entry.get("title") or "").strip()
    pub_date = entry.get("published") or entry.get("updated")
    if not title or not pub_date:
        return None
    return {
        "title": title,
        "description": entry.get("summary") or entry.get("description") or "",
        "link": entry.get("link"),
        "guid": entry.get("id") or entry.get("link"),
        "pub_date": pub_date,
        "categories": [tag.get("term") for tag in entry.get("tags", []) if tag.get("term")],
    }


def published_since(item: Dict[str, Any], since: datetime) -> bool:
    published = parse_datetime(item.get("pub_date"))
    return published is not None and published >= since

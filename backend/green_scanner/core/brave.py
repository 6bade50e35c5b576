import logging
import os
from typing import Any, Dict, List

import httpx

from green_scanner.core.config import settings
from green_scanner.core.errors import UpstreamError
from green_scanner.schemas.sources import WebResult

logger = logging.getLogger(__name__)

BRAVE_BASE = "https://api.search.brave.com/res/v1/web/search"

MAX_RESULTS = 3


def _get_brave_key() -> str:
    # Prefer pydantic settings, fallback to env; empty means "not configured"
    key = (getattr(settings, "BRAVE_API_KEY", "") or "").strip()
    if not key:
        key = (os.environ.get("BRAVE_API_KEY", "") or "").strip()
    return key


def decode_results(data: Any, limit: int = MAX_RESULTS) -> List[WebResult]:
    """
    Pull `web.results[*]` out of a Brave response.
    Missing keys or wrong types decode to an empty list.
    """
    web = data.get("web") if isinstance(data, dict) else None
    results = web.get("results") if isinstance(web, dict) else None
    if not isinstance(results, list):
        return []

    out: List[WebResult] = []
    for r in results:
        if not isinstance(r, dict):
            continue
        out.append(
            WebResult(
                title=r.get("title") if isinstance(r.get("title"), str) else "",
                url=r.get("url") if isinstance(r.get("url"), str) else "",
                snippet=r.get("description") if isinstance(r.get("description"), str) else "",
            )
        )
        if len(out) >= limit:
            break
    return out


async def _web_search(q: str, api_key: str, count: int) -> Dict[str, Any]:
    """
    Calls the Brave web search API and returns the raw JSON response.
    """
    headers = {
        "X-Subscription-Token": api_key,
        "Accept": "application/json",
        "Accept-Encoding": "gzip",
    }
    params: Dict[str, Any] = {"q": q, "count": count}

    try:
        async with httpx.AsyncClient(timeout=settings.WEB_SEARCH_TIMEOUT_SECONDS) as client:
            r = await client.get(BRAVE_BASE, params=params, headers=headers)
    except httpx.HTTPError as e:
        raise UpstreamError("brave", f"transport error: {e}") from e

    if r.status_code >= 400:
        raise UpstreamError("brave", "request failed", status_code=r.status_code, body=r.text[:500])

    try:
        return r.json()
    except ValueError as e:
        raise UpstreamError("brave", "invalid JSON body", status_code=r.status_code) from e


async def search(query: str, limit: int = MAX_RESULTS) -> List[WebResult]:
    """
    Best-effort web search: up to `limit` (max 3) results, or [] when no key
    is configured or anything goes wrong.
    """
    api_key = _get_brave_key()
    if not api_key:
        logger.debug("BRAVE_API_KEY is not set; skipping web search")
        return []

    limit = max(1, min(int(limit), MAX_RESULTS))

    try:
        data = await _web_search(query, api_key, limit)
    except UpstreamError as e:
        logger.warning("Brave search failed for %r: %s", query, e)
        return []

    return decode_results(data, limit)

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from green_scanner.core.config import settings
from green_scanner.core.errors import UpstreamError
from green_scanner.schemas.sources import OffProduct, OffSearchOutcome

logger = logging.getLogger(__name__)

LEGACY_SEARCH_PATH = "/cgi/search.pl"
SEARCH_PATH = "/api/v2/search"

# Everything the pipeline reads from a product record
PRODUCT_FIELDS = (
    "product_name",
    "brands",
    "ecoscore_grade",
    "categories_tags",
    "packaging_tags",
    "labels_tags",
    "nutriscore_grade",
    "ingredients_text",
    "image_url",
    "image_front_url",
)

IMAGE_FIELDS = ("product_name", "brands", "image_url", "image_front_url")

RELAXED_PAGE_SIZE = 24
IMAGE_MATCH_PAGE_SIZE = 12


def decode_products(payload: Any) -> List[OffProduct]:
    """
    Decode the `products` array of a search response.
    Non-dict payloads, a missing/non-list `products` key and non-dict entries
    all decode to "absent" instead of raising.
    """
    if not isinstance(payload, dict):
        return []
    raw_products = payload.get("products")
    if not isinstance(raw_products, list):
        return []

    out: List[OffProduct] = []
    for raw in raw_products:
        p = OffProduct.from_raw(raw)
        if p is not None:
            out.append(p)
    return out


def _build_params(
    query: str,
    *,
    category: Optional[str],
    page_size: Optional[int],
    sort_by: Optional[str],
    fields: Optional[Sequence[str]],
    simple: bool,
) -> Dict[str, Any]:
    params: Dict[str, Any] = {}

    if simple:
        params.update({"search_terms": query, "search_simple": 1, "action": "process", "json": 1})
    elif category:
        params["categories_tags"] = category
    else:
        params["search_terms"] = query

    if sort_by:
        params["sort_by"] = sort_by
    if page_size:
        params["page_size"] = page_size
    if fields:
        params["fields"] = ",".join(fields)
    return params


async def _get_json(path: str, params: Dict[str, Any]) -> Any:
    url = f"{settings.OFF_BASE_URL.rstrip('/')}{path}"
    headers = {"User-Agent": settings.OFF_USER_AGENT, "Accept": "application/json"}

    try:
        async with httpx.AsyncClient(timeout=settings.OFF_TIMEOUT_SECONDS) as client:
            r = await client.get(url, params=params, headers=headers)
    except httpx.TimeoutException as e:
        raise UpstreamError("openfoodfacts", f"timeout: {e}") from e
    except httpx.HTTPError as e:
        raise UpstreamError("openfoodfacts", f"transport error: {e}") from e

    if r.status_code >= 400:
        raise UpstreamError("openfoodfacts", "request failed", status_code=r.status_code, body=r.text[:500])

    try:
        return r.json()
    except ValueError as e:
        raise UpstreamError("openfoodfacts", "invalid JSON body", status_code=r.status_code) from e


async def search(
    query: str,
    *,
    category: Optional[str] = None,
    page_size: Optional[int] = None,
    sort_by: Optional[str] = None,
    fields: Optional[Sequence[str]] = None,
    simple: bool = False,
) -> OffSearchOutcome:
    """
    Search Open Food Facts by free text, or by category tag when `category`
    is given. `simple=True` uses the legacy exact-match endpoint.

    Never raises: failures come back as OffSearchOutcome(ok=False).
    Products keep upstream order.
    """
    path = LEGACY_SEARCH_PATH if simple else SEARCH_PATH
    params = _build_params(
        query,
        category=category,
        page_size=page_size,
        sort_by=sort_by,
        fields=fields,
        simple=simple,
    )

    try:
        payload = await _get_json(path, params)
    except UpstreamError as e:
        logger.warning("Open Food Facts search failed (query=%r, category=%r): %s", query, category, e)
        return OffSearchOutcome(ok=False, status_code=e.status_code, error=e.message)

    products = decode_products(payload)
    logger.debug("Open Food Facts returned %d products for %r", len(products), category or query)
    return OffSearchOutcome(ok=True, products=products)


async def exact_search(query: str, page_size: Optional[int] = None) -> OffSearchOutcome:
    return await search(query, simple=True, page_size=page_size)


async def relaxed_search(query: str) -> OffSearchOutcome:
    return await search(query, sort_by="popularity", page_size=RELAXED_PAGE_SIZE, fields=PRODUCT_FIELDS)


async def category_search(category: str) -> OffSearchOutcome:
    return await search("", category=category, sort_by="popularity", page_size=RELAXED_PAGE_SIZE, fields=PRODUCT_FIELDS)


async def image_search(query: str, page_size: int = IMAGE_MATCH_PAGE_SIZE) -> OffSearchOutcome:
    return await search(query, page_size=page_size, fields=IMAGE_FIELDS)

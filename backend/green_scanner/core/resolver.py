"""
Result assembly.

resolve() turns a product name and/or photo into a SustainableResult:

1. photo only -> identify the product with Gemini
2. exact Open Food Facts search
   - unreachable  -> estimated result
   - no match     -> relaxed search + estimated result
3. first match -> ProductDetails, check completeness
4. incomplete -> estimate missing fields (Gemini, Brave snippets if needed)
5. no user photo -> look up a product image on Open Food Facts
6. alternatives -> category (or free-text) search, ranked; topped up with
   a free-text search when fewer than 3 survive

External failures never escape: each gateway returns empty/None and the
stage picks its fallback. Only programming errors propagate.
"""

import logging
from typing import List, Optional, Tuple

from green_scanner.core import brave, gemini, openfoodfacts
from green_scanner.core.config import settings
from green_scanner.core.images import pick_image
from green_scanner.core.narrative import (
    alternatives_unavailable_text,
    estimated_only_text,
    no_exact_match_text,
    render,
    unreachable_text,
)
from green_scanner.core.ranker import merge_alternatives, pick_alternatives
from green_scanner.core.text import (
    UNKNOWN,
    format_tags,
    is_unknown_score,
    is_valid_image_url,
    normalize_field,
    normalize_score,
    score_rank,
)
from green_scanner.schemas.product import (
    EstimationResult,
    ProductDetails,
    ResolutionTrace,
    SustainableResult,
)
from green_scanner.schemas.sources import OffProduct

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT_QUERY = "Unknown product"

# Below this many ranked alternatives, run the free-text top-up search
MIN_ALTERNATIVES = 3

DETAIL_FIELDS = ("brand", "categories", "packaging", "labels", "ingredients")


def is_incomplete(product: ProductDetails) -> bool:
    return (
        any(getattr(product, f) == UNKNOWN for f in DETAIL_FIELDS)
        or is_unknown_score(product.ecoscore)
        or is_unknown_score(product.nutriscore)
    )


def details_from_record(record: OffProduct, fallback_name: str) -> ProductDetails:
    ingredients = (record.ingredients_text or "").strip()
    eco = (record.ecoscore_grade or "").strip()
    return ProductDetails(
        name=(record.product_name or "").strip() or fallback_name,
        brand=record.first_brand,
        categories=format_tags(record.categories_tags),
        packaging=format_tags(record.packaging_tags),
        labels=format_tags(record.labels_tags),
        ingredients=ingredients or UNKNOWN,
        ecoscore=eco.upper() if eco else "?",
        nutriscore=record.nutriscore_grade.upper() if record.nutriscore_grade is not None else UNKNOWN,
        image_url=record.best_image,
    )


def estimated_details(estimate: Optional[EstimationResult], fallback_name: str) -> ProductDetails:
    """A product built purely from the estimator (every flag set)."""
    e = estimate or EstimationResult()
    return ProductDetails(
        name=normalize_field(e.name, fallback_name),
        brand=normalize_field(e.brand),
        categories=normalize_field(e.categories),
        packaging=normalize_field(e.packaging),
        labels=normalize_field(e.labels),
        ingredients=normalize_field(e.ingredients),
        ecoscore=normalize_score(e.ecoscore),
        nutriscore=normalize_score(e.nutriscore),
        image_url=e.image_url if is_valid_image_url(e.image_url) else "",
        eco_estimated=True,
        nutri_estimated=True,
        details_estimated=True,
    )


def _merge_score(current: str, offered: Optional[str]) -> Tuple[Optional[str], bool]:
    """
    -> (new value or None to keep, estimated flag).

    Unresolved scores always take the (normalized) estimate. Resolved scores
    are never downgraded, but any offered value still marks the score as
    estimated.
    """
    has_offer = bool(offered and offered.strip())
    if is_unknown_score(current):
        return normalize_score(offered), True
    if not has_offer:
        return None, False
    value = normalize_score(offered)
    if score_rank(value) <= score_rank(current):
        return value, True
    return None, True


def merge_estimate(product: ProductDetails, estimate: EstimationResult) -> ProductDetails:
    """Fill the gaps of an Open Food Facts record with estimator output."""
    updates = {}

    for field in DETAIL_FIELDS:
        if getattr(product, field) == UNKNOWN:
            updates[field] = normalize_field(getattr(estimate, field), UNKNOWN)

    eco, eco_flag = _merge_score(product.ecoscore, estimate.ecoscore)
    if eco is not None:
        updates["ecoscore"] = eco
    nutri, nutri_flag = _merge_score(product.nutriscore, estimate.nutriscore)
    if nutri is not None:
        updates["nutriscore"] = nutri

    updates["eco_estimated"] = product.eco_estimated or eco_flag
    updates["nutri_estimated"] = product.nutri_estimated or nutri_flag
    updates["details_estimated"] = product.details_estimated or estimate.offers_details()

    if is_valid_image_url(estimate.image_url) and not is_valid_image_url(product.image_url):
        updates["image_url"] = estimate.image_url

    return product.model_copy(update=updates)


def _with_normalized_scores(product: ProductDetails) -> ProductDetails:
    return product.model_copy(
        update={
            "ecoscore": normalize_score(product.ecoscore),
            "nutriscore": normalize_score(product.nutriscore),
        }
    )


async def run_estimation(
    name: str,
    image: Optional[str],
    trace: ResolutionTrace,
) -> Tuple[Optional[EstimationResult], ResolutionTrace]:
    """
    Ask the estimator; if it comes back empty, retry once with web snippets.
    """
    estimate = await gemini.estimate(name, [], image)
    trace = trace.with_(estimation_used=True)

    if estimate is None or estimate.is_empty():
        logger.info("Estimate for %r was empty; retrying with web results", name)
        web_results = await brave.search(name)
        trace = trace.with_(web_search_used=True)
        estimate = await gemini.estimate(name, web_results, image)

    if estimate is None:
        trace = trace.note("estimation unavailable")
    return estimate, trace


async def _identify(image: str, trace: ResolutionTrace) -> Tuple[str, Optional[str], Optional[str], ResolutionTrace]:
    """-> (query, image-derived name, image-derived brand, trace)"""
    ident = await gemini.identify_from_image(image)
    name = normalize_field(ident.name if ident else None, UNKNOWN)
    brand = normalize_field(ident.brand if ident else None, "")
    if name == UNKNOWN:
        logger.info("No product name detected from image")
        return "", None, None, trace.note("image identification failed")

    # Brand and name are joined as-is; repeated brand tokens are kept
    query = " ".join(part for part in (brand, name) if part).strip() or name
    logger.info("Image identified as %r", query)
    return query, name, brand or None, trace.with_(effective_query=query, image_identified=True)


async def _hydrate_image(
    product: ProductDetails,
    effective_query: str,
    trace: ResolutionTrace,
) -> Tuple[ProductDetails, ResolutionTrace]:
    trace = trace.with_(image_query=product.name or effective_query)

    if product.is_estimated:
        # Estimated records take the single top hit, no relevance matching
        outcome = await openfoodfacts.image_search(product.name, page_size=1)
        top = outcome.products[0].best_image if outcome.ok and outcome.products else ""
        trace = trace.with_(top_image=top or "(none)")
        if is_valid_image_url(top):
            product = product.model_copy(update={"image_url": top})
        return product, trace

    # The record's own image counts as the top hit
    trace = trace.with_(top_image=product.image_url if is_valid_image_url(product.image_url) else "(none)")
    if is_valid_image_url(product.image_url):
        return product, trace

    brand = product.brand if product.brand and product.brand != UNKNOWN else None
    queries: List[str] = []
    if brand:
        queries.append(f"{brand} {product.name}")
    queries.append(product.name)
    if effective_query and effective_query not in queries:
        queries.append(effective_query)

    for q in queries:
        outcome = await openfoodfacts.image_search(q)
        if not outcome.ok:
            continue
        image_url = pick_image(outcome.products, q, brand)
        trace = trace.with_(matched_image=image_url or "(none)")
        if is_valid_image_url(image_url):
            logger.debug("Image for %r found via %r", product.name, q)
            return product.model_copy(update={"image_url": image_url}), trace

    return product, trace


async def _find_alternatives(
    product: ProductDetails,
    categories_tags: List[str],
    effective_query: str,
    trace: ResolutionTrace,
) -> SustainableResult:
    category = categories_tags[-1] if categories_tags else ""
    if category:
        outcome = await openfoodfacts.category_search(category)
        trace = trace.with_(alternatives_source="category")
    else:
        outcome = await openfoodfacts.relaxed_search(effective_query)
        trace = trace.with_(alternatives_source="search")

    if not outcome.ok:
        logger.warning("Alternatives search failed (%s)", outcome.status_label)
        return SustainableResult(
            text=alternatives_unavailable_text(product, outcome.status_label),
            product=product,
            alternatives=[],
            trace=trace.note(f"alternatives search failed: {outcome.status_label}"),
        )

    alternatives = pick_alternatives(outcome.products, product.ecoscore, product.nutriscore, product.name)

    if len(alternatives) < MIN_ALTERNATIVES:
        trace = trace.with_(supplementary_search=True)
        extra = await openfoodfacts.relaxed_search(effective_query)
        if extra.ok:
            more = pick_alternatives(extra.products, product.ecoscore, product.nutriscore, product.name)
            alternatives = merge_alternatives(alternatives, more)

    logger.info("Resolved %r with %d alternatives", product.name, len(alternatives))
    return SustainableResult(
        text=render(product, alternatives, trace, diagnostics=settings.NARRATIVE_DIAGNOSTICS),
        product=product,
        alternatives=alternatives,
        trace=trace,
    )


async def resolve(query: str, image: Optional[str] = None) -> SustainableResult:
    """
    Resolve a product name and/or image (data URL) into a SustainableResult.
    """
    effective_query = (query or "").strip()
    trace = ResolutionTrace(effective_query=effective_query)
    image_name: Optional[str] = None
    image_brand: Optional[str] = None

    # 1) input resolution
    if not effective_query and image:
        effective_query, image_name, image_brand, trace = await _identify(image, trace)

    if not effective_query:
        estimate, trace = await run_estimation(UNKNOWN_PRODUCT_QUERY, image, trace)
        return SustainableResult(
            text=estimated_only_text(),
            product=estimated_details(estimate, UNKNOWN),
            alternatives=[],
            trace=trace,
        )

    # 2) primary lookup
    primary = await openfoodfacts.exact_search(effective_query)
    if not primary.ok:
        trace = trace.with_(primary_lookup="failed").note(f"primary search failed: {primary.status_label}")
        estimate, trace = await run_estimation(effective_query, image, trace)
        return SustainableResult(
            text=unreachable_text(primary.status_label),
            product=estimated_details(estimate, effective_query),
            alternatives=[],
            trace=trace,
        )

    if not primary.products:
        logger.info("No exact match for %r; trying relaxed search", effective_query)
        trace = trace.with_(primary_lookup="empty", alternatives_source="search")
        relaxed = await openfoodfacts.relaxed_search(effective_query)
        estimate, trace = await run_estimation(effective_query, image, trace)
        alternatives = pick_alternatives(relaxed.products, "?", UNKNOWN, effective_query)
        return SustainableResult(
            text=no_exact_match_text(effective_query),
            product=estimated_details(estimate, effective_query),
            alternatives=alternatives,
            trace=trace,
        )

    # 3) completeness
    record = primary.products[0]
    trace = trace.with_(primary_lookup="ok")
    product = details_from_record(record, effective_query)
    if image_name:
        product = product.model_copy(update={"name": image_name})
    if image_brand and product.brand == UNKNOWN:
        product = product.model_copy(update={"brand": image_brand})

    # 4) estimation fallback
    if is_incomplete(product):
        estimate, trace = await run_estimation(record.product_name or effective_query, image, trace)
        if estimate is not None:
            product = merge_estimate(product, estimate)
    product = _with_normalized_scores(product)

    # 5) image hydration, only when the user did not send a photo
    if not image:
        product, trace = await _hydrate_image(product, effective_query, trace)

    # 6) alternatives
    return await _find_alternatives(product, record.categories_tags or [], effective_query, trace)

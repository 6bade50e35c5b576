"""
Alternative ranking.

Candidates are filtered to those at least as good as the scanned product on
both Eco-Score and Nutri-Score, then grouped by Eco-Score letter so the
greenest options come first. Within a group, upstream order is kept.
"""

from typing import Dict, Iterable, List, Optional, Sequence

from green_scanner.core.text import SCORE_LETTERS, UNKNOWN, format_tags, normalize_score, score_rank
from green_scanner.schemas.product import ProductDetails, RankedCandidate
from green_scanner.schemas.sources import OffProduct

MAX_ALTERNATIVES = 6

OTHER_BUCKET = "other"
BUCKET_ORDER = SCORE_LETTERS + (OTHER_BUCKET,)


def to_candidate(p: OffProduct) -> Optional[RankedCandidate]:
    name = (p.product_name or "").strip()
    if not name:
        return None

    ingredients = (p.ingredients_text or "").strip()
    return RankedCandidate(
        name=name,
        brand=p.first_brand,
        score=p.ecoscore_grade.upper() if p.ecoscore_grade is not None else "?",
        nutri_score=p.nutriscore_grade.upper() if p.nutriscore_grade is not None else UNKNOWN,
        categories=format_tags(p.categories_tags),
        packaging=format_tags(p.packaging_tags),
        labels=format_tags(p.labels_tags),
        ingredients=ingredients or UNKNOWN,
        image_url=p.best_image,
    )


def _to_details(c: RankedCandidate) -> ProductDetails:
    # Unscored candidates only survive when the threshold is unscored too;
    # they are shown with the neutral grade.
    return ProductDetails(
        name=c.name,
        brand=c.brand,
        categories=c.categories,
        packaging=c.packaging,
        labels=c.labels,
        ingredients=c.ingredients,
        ecoscore=normalize_score(c.score),
        nutriscore=normalize_score(c.nutri_score),
        image_url=c.image_url,
    )


def pick_alternatives(
    candidates: Iterable[OffProduct],
    eco_threshold: str,
    nutri_threshold: str,
    exclude_name: str,
) -> List[ProductDetails]:
    """
    Return up to six alternatives no worse than the thresholds on either
    axis, best Eco-Score first. The product named `exclude_name` (compared
    case-insensitively) is never included, and brand+name duplicates
    appear once.
    """
    eco_rank = score_rank(eco_threshold)
    nutri_rank = score_rank(nutri_threshold)
    excluded = (exclude_name or "").strip().lower()

    buckets: Dict[str, List[RankedCandidate]] = {k: [] for k in BUCKET_ORDER}
    for p in candidates:
        c = to_candidate(p)
        if c is None or c.name.lower() == excluded:
            continue
        if score_rank(c.score) > eco_rank or score_rank(c.nutri_score) > nutri_rank:
            continue
        key = c.score if c.score in buckets else OTHER_BUCKET
        buckets[key].append(c)

    out: List[ProductDetails] = []
    seen = set()
    for key in BUCKET_ORDER:
        for c in buckets[key]:
            details = _to_details(c)
            # Repeated barcodes of the same product: keep the first
            if dedupe_key(details) in seen:
                continue
            seen.add(dedupe_key(details))
            out.append(details)
    return out[:MAX_ALTERNATIVES]


def dedupe_key(p: ProductDetails) -> str:
    return f"{p.brand}-{p.name}"


def merge_alternatives(
    primary: Sequence[ProductDetails],
    extra: Sequence[ProductDetails],
    limit: int = MAX_ALTERNATIVES,
) -> List[ProductDetails]:
    """
    Concatenate and dedupe by brand+name. A later duplicate replaces the
    earlier value but keeps the earlier position.
    """
    unique: Dict[str, ProductDetails] = {}
    for alt in list(primary) + list(extra):
        unique[dedupe_key(alt)] = alt
    return list(unique.values())[:limit]

from typing import Optional, Sequence

from green_scanner.core.text import normalize_text
from green_scanner.schemas.sources import OffProduct


def relevance_score(p: OffProduct, query: str, brand: Optional[str] = None) -> int:
    """
    Lexical match between a record and the query we searched for.
    exact name +6, name contains query +4, query contains name +3,
    +1 per query token found in the name, +2 per brand token found in brands.
    """
    q = normalize_text(query)
    name = normalize_text(p.product_name)
    brands = normalize_text(p.brands)

    score = 0
    if name and name == q:
        score += 6
    if name and q and q in name:
        score += 4
    if name and q and name in q:
        score += 3
    for token in q.split():
        if token in name:
            score += 1
    for token in normalize_text(brand).split():
        if token in brands:
            score += 2
    return score


def pick_image(products: Sequence[OffProduct], query: str, brand: Optional[str] = None) -> str:
    """Image of the most relevant record that has one, or ""."""
    with_image = [p for p in products if p.has_image]
    if not with_image:
        return ""
    # sorted() is stable: ties keep upstream order
    best = sorted(with_image, key=lambda p: relevance_score(p, query, brand), reverse=True)[0]
    return best.best_image

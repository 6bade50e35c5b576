from typing import List, Optional, Sequence, Tuple

from green_scanner.schemas.product import ProductDetails, ResolutionTrace

GOOD_CHOICE = "your product is already a good choice!"
BETTER_OPTIONS = "Yum, but you have better options ;)"

NO_ALTERNATIVES = "No similar alternatives found. Showing the best available match from Open Food Facts."


def _is_score_good(score: str) -> bool:
    return score.upper() == "A"


def good_choice_message(eco: str, nutri: str) -> Tuple[str, str]:
    """(analysis line, alternatives heading)"""
    if _is_score_good(eco) or _is_score_good(nutri):
        return GOOD_CHOICE, "Some other choices..."
    return BETTER_OPTIONS, "You may want to consider..."


def scanned_line(product: ProductDetails) -> str:
    return f"\U0001F50D Scanned: {product.name} (Eco-Score: {product.ecoscore})"


def _detail_lines(p: ProductDetails, indent: str = "") -> List[str]:
    return [
        f"{indent}- Brand: {p.brand}",
        f"{indent}- Categories: {p.categories}",
        f"{indent}- Packaging: {p.packaging}",
        f"{indent}- Labels: {p.labels}",
        f"{indent}- Ingredients: {p.ingredients}",
        f"{indent}- Nutri-Score: **{p.nutriscore}**",
    ]


def detail_block(product: ProductDetails) -> str:
    return "\n".join(["**Details**"] + _detail_lines(product))


def alternative_entry(index: int, alt: ProductDetails) -> str:
    header = f"{index}. {alt.brand} {alt.name} (Score: {alt.ecoscore})"
    return "\n".join([header] + _detail_lines(alt, indent="   "))


def render_diagnostics(trace: ResolutionTrace) -> str:
    return "\n".join([
        f"OFF query debug: {trace.image_query}",
        f"OFF top image debug: {trace.top_image or '(none)'}",
        f"OFF match image debug: {trace.matched_image or '(none)'}",
    ])


def render(
    product: ProductDetails,
    alternatives: Sequence[ProductDetails],
    trace: Optional[ResolutionTrace] = None,
    diagnostics: bool = False,
) -> str:
    """
    The full report: scanned line, details, analysis and the numbered
    alternatives. Diagnostics are appended only when alternatives exist.
    """
    analysis, heading = good_choice_message(product.ecoscore, product.nutriscore)
    head = f"{scanned_line(product)}\n{detail_block(product)}\n\n{analysis}"

    if not alternatives:
        return f"{head}\n\n{NO_ALTERNATIVES}"

    lines = "\n".join(alternative_entry(i + 1, alt) for i, alt in enumerate(alternatives))
    text = f"{head}\n\n{heading}\n{lines}"
    if diagnostics and trace is not None:
        text += "\n\n" + render_diagnostics(trace)
    return text


def estimated_only_text() -> str:
    return "No product name detected from the image. Showing estimated details."


def unreachable_text(status: str) -> str:
    return f"Error: Could not reach Open Food Facts ({status}). Using estimated data."


def no_exact_match_text(query: str) -> str:
    return (
        f'No exact match found for "{query}". '
        "Showing the best available similar products and estimated details."
    )


def alternatives_unavailable_text(product: ProductDetails, status: str) -> str:
    return (
        f"{scanned_line(product)}\n{detail_block(product)}\n\n"
        f"Could not load alternatives right now (Open Food Facts error {status})."
    )

"""Shared fixtures: offline settings, Open Food Facts records, stubbed gateways."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from green_scanner.core.config import settings
from green_scanner.schemas.sources import OffProduct, OffSearchOutcome


@pytest.fixture(autouse=True)
def offline_settings(monkeypatch):
    """No test ever talks to a real API."""
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "")
    monkeypatch.setattr(settings, "BRAVE_API_KEY", "")
    monkeypatch.setattr(settings, "GEMINI_MAX_RETRIES", 0)
    monkeypatch.setattr(settings, "NARRATIVE_DIAGNOSTICS", True)
    monkeypatch.delenv("BRAVE_API_KEY", raising=False)
    yield settings


def make_off(**overrides) -> OffProduct:
    """A complete Open Food Facts record; override any field."""
    fields = dict(
        product_name="Spaghetti n.5",
        brands="Barilla, Barilla Group",
        ecoscore_grade="b",
        nutriscore_grade="c",
        categories_tags=["en:pastas", "en:spaghetti"],
        packaging_tags=["en:cardboard-box"],
        labels_tags=["en:no-palm-oil"],
        ingredients_text="Durum wheat semolina, water",
        image_front_url="https://images.openfoodfacts.org/spaghetti.jpg",
        image_url=None,
    )
    fields.update(overrides)
    return OffProduct(**fields)


def found(*products: OffProduct) -> OffSearchOutcome:
    return OffSearchOutcome(ok=True, products=list(products))


def failed(status_code=500) -> OffSearchOutcome:
    return OffSearchOutcome(ok=False, status_code=status_code, error="request failed")


def http_response(status_code=200, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.headers = {}
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def gateways():
    """
    Every external call the resolver makes, stubbed.
    Defaults: empty searches, no estimate, no identification, no web results.
    """
    with patch("green_scanner.core.openfoodfacts.exact_search", new=AsyncMock(return_value=found())) as exact, \
         patch("green_scanner.core.openfoodfacts.relaxed_search", new=AsyncMock(return_value=found())) as relaxed, \
         patch("green_scanner.core.openfoodfacts.category_search", new=AsyncMock(return_value=found())) as category, \
         patch("green_scanner.core.openfoodfacts.image_search", new=AsyncMock(return_value=found())) as image, \
         patch("green_scanner.core.gemini.estimate", new=AsyncMock(return_value=None)) as estimate, \
         patch("green_scanner.core.gemini.identify_from_image", new=AsyncMock(return_value=None)) as identify, \
         patch("green_scanner.core.brave.search", new=AsyncMock(return_value=[])) as web:
        yield SimpleNamespace(
            exact_search=exact,
            relaxed_search=relaxed,
            category_search=category,
            image_search=image,
            estimate=estimate,
            identify=identify,
            web_search=web,
        )

from typing import Any, List, Optional

from pydantic import BaseModel


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _list_or_none(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    return [str(v) for v in value if v is not None]


class OffProduct(BaseModel):
    """One Open Food Facts record, decoded. Absent or mistyped fields are None."""
    product_name: Optional[str] = None
    brands: Optional[str] = None
    ecoscore_grade: Optional[str] = None
    nutriscore_grade: Optional[str] = None
    categories_tags: Optional[List[str]] = None
    packaging_tags: Optional[List[str]] = None
    labels_tags: Optional[List[str]] = None
    ingredients_text: Optional[str] = None
    image_front_url: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["OffProduct"]:
        if not isinstance(raw, dict):
            return None
        return cls(
            product_name=_str_or_none(raw.get("product_name")),
            brands=_str_or_none(raw.get("brands")),
            ecoscore_grade=_str_or_none(raw.get("ecoscore_grade")),
            nutriscore_grade=_str_or_none(raw.get("nutriscore_grade")),
            categories_tags=_list_or_none(raw.get("categories_tags")),
            packaging_tags=_list_or_none(raw.get("packaging_tags")),
            labels_tags=_list_or_none(raw.get("labels_tags")),
            ingredients_text=_str_or_none(raw.get("ingredients_text")),
            image_front_url=_str_or_none(raw.get("image_front_url")),
            image_url=_str_or_none(raw.get("image_url")),
        )

    @property
    def best_image(self) -> str:
        return self.image_front_url or self.image_url or ""

    @property
    def has_image(self) -> bool:
        return self.image_front_url is not None or self.image_url is not None

    @property
    def first_brand(self) -> str:
        if not self.brands:
            return "Unknown"
        return self.brands.split(",")[0].strip() or "Unknown"


class OffSearchOutcome(BaseModel):
    """
    Result of one database call.
    ok=False: transport/HTTP failure. ok=True with no products: nothing matched.
    """
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    products: List[OffProduct] = []

    @property
    def status_label(self) -> str:
        if self.status_code is not None:
            return str(self.status_code)
        return self.error or "unavailable"


class WebResult(BaseModel):
    title: str = ""
    url: str = ""
    snippet: str = ""


class ImageIdentification(BaseModel):
    name: Optional[str] = None
    brand: Optional[str] = None

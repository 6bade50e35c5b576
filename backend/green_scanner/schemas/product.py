from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ProductDetails(BaseModel):
    """
    One product as shown to the user. "Unknown" means "not established".
    The *_estimated flags mark values that came from the estimator.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    brand: str = "Unknown"
    categories: str = "Unknown"
    packaging: str = "Unknown"
    labels: str = "Unknown"
    ingredients: str = "Unknown"
    ecoscore: str = "?"
    nutriscore: str = "Unknown"
    image_url: str = ""
    eco_estimated: bool = False
    nutri_estimated: bool = False
    details_estimated: bool = False

    @property
    def is_estimated(self) -> bool:
        return self.eco_estimated or self.nutri_estimated or self.details_estimated


class RankedCandidate(BaseModel):
    name: str
    brand: str
    score: str                  # eco letter or "?"
    nutri_score: str            # nutri letter or "Unknown"
    categories: str
    packaging: str
    labels: str
    ingredients: str
    image_url: str = ""


class EstimationResult(BaseModel):
    """Estimator output; every field optional."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    brand: Optional[str] = None
    categories: Optional[str] = None
    packaging: Optional[str] = None
    labels: Optional[str] = None
    ingredients: Optional[str] = None
    ecoscore: Optional[str] = None
    nutriscore: Optional[str] = None
    image_url: Optional[str] = None

    def is_empty(self) -> bool:
        for value in self.model_dump().values():
            if value and value.strip() and value.strip().lower() != "unknown":
                return False
        return True

    def offers_details(self) -> bool:
        return any([self.brand, self.categories, self.packaging, self.labels, self.ingredients])


class ResolutionTrace(BaseModel):
    """
    Immutable record of how a result was assembled. Each stage returns a new
    trace instead of mutating this one.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    effective_query: str = ""
    image_identified: bool = False
    primary_lookup: str = "skipped"          # ok | empty | failed | skipped
    estimation_used: bool = False
    web_search_used: bool = False
    image_query: str = ""
    top_image: str = ""
    matched_image: str = ""
    alternatives_source: str = "none"        # category | search | none
    supplementary_search: bool = False
    notes: Tuple[str, ...] = ()

    def with_(self, **changes) -> "ResolutionTrace":
        return self.model_copy(update=changes)

    def note(self, message: str) -> "ResolutionTrace":
        return self.model_copy(update={"notes": self.notes + (message,)})


class SustainableResult(BaseModel):
    text: str
    product: ProductDetails
    alternatives: List[ProductDetails]
    trace: ResolutionTrace = ResolutionTrace()

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, StringConstraints, ValidationError

from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

GoldCategory = Literal["world", "myanmar"]
PostTitle = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ExchangeRate(BaseModel):
    currency: str
    buy: str
    sell: str


class DisplayRate(BaseModel):
    code: str
    currency: str
    flag: str = ""
    link: str = ""
    buy: str
    sell: str


class GoldPrice(BaseModel):
    type: str
    price: float = Field(allow_inf_nan=False)
    change: Optional[float] = Field(0.0, allow_inf_nan=False)
    category: GoldCategory
    unit: Optional[str] = None


class Post(BaseModel):
    id: str
    title: str
    content: Optional[str] = ""
    published: bool = False
    created_at: Optional[str] = None

    model_config = {"extra": "ignore"}


class PostCreate(BaseModel):
    title: PostTitle
    content: str = ""


class PostUpdate(BaseModel):
    title: Optional[PostTitle] = None
    content: Optional[str] = None
    published: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class PriceUpdate(BaseModel):
    rates: List[ExchangeRate] = Field(default_factory=list)
    gold_prices: List[GoldPrice] = Field(default_factory=list)


class LoginPayload(BaseModel):
    email: str
    password: str


def validate_rates(raw: Any) -> List[Dict[str, str]]:
    """Coerce upstream or stored rows into rate dicts, logging and dropping invalid entries."""
    if not isinstance(raw, list):
        return []
    cleaned: List[Dict[str, str]] = []
    for entry in raw:
        try:
            cleaned.append(ExchangeRate.model_validate(entry).model_dump())
        except ValidationError as exc:
            logger.warning("rate_validation_failed", extra={"error": str(exc)[:200]})
    return cleaned


def validate_gold_prices(raw: Any) -> List[Dict[str, Any]]:
    """Stored gold rows that fail validation are logged and left out."""
    if not isinstance(raw, list):
        return []
    cleaned: List[Dict[str, Any]] = []
    for entry in raw:
        try:
            price = GoldPrice.model_validate(entry)
        except ValidationError as exc:
            logger.warning("gold_price_validation_failed", extra={"error": str(exc)[:200]})
            continue
        row = price.model_dump(exclude={"unit"})
        row["change"] = row["change"] or 0.0
        if isinstance(entry, dict) and entry.get("updated_at"):
            row["updated_at"] = entry["updated_at"]
        cleaned.append(row)
    return cleaned


def validate_posts(raw: Any) -> List[Dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    cleaned: List[Dict[str, Any]] = []
    for entry in raw:
        try:
            cleaned.append(Post.model_validate(entry).model_dump())
        except ValidationError as exc:
            logger.warning("post_validation_failed", extra={"error": str(exc)[:200]})
    return cleaned

"""Stream event models and the payload classifier for the analysis backend."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = structlog.get_logger("pauseshop.events")


class Category(str, Enum):
    CLOTHING = "clothing"
    ELECTRONICS = "electronics"
    FURNITURE = "furniture"
    ACCESSORIES = "accessories"
    FOOTWEAR = "footwear"
    HOME_DECOR = "home_decor"
    BOOKS_MEDIA = "books_media"
    SPORTS_FITNESS = "sports_fitness"
    BEAUTY_PERSONAL_CARE = "beauty_personal_care"
    KITCHEN_DINING = "kitchen_dining"
    OTHER = "other"


class TargetGender(str, Enum):
    MEN = "men"
    WOMEN = "women"
    UNISEX = "unisex"
    BOY = "boy"
    GIRL = "girl"


class _StreamModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class ProductEvent(_StreamModel):
    """One product the backend spotted in the frame."""

    name: str
    category: Category = Category.OTHER
    icon_category: str = Field(alias="iconCategory")
    brand: str = "unknown"
    primary_color: str = Field(default="unknown", alias="primaryColor")
    secondary_colors: tuple[str, ...] = Field(default=(), alias="secondaryColors")
    features: tuple[str, ...] = ()
    target_gender: TargetGender = Field(default=TargetGender.UNISEX, alias="targetGender")
    confidence: float | None = None
    search_terms: str | None = Field(default=None, alias="searchTerms")

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() not in Category._value2member_map_:
            return Category.OTHER
        return value.lower() if isinstance(value, str) else value

    @field_validator("target_gender", mode="before")
    @classmethod
    def _coerce_gender(cls, value: Any) -> Any:
        if value is None:
            return TargetGender.UNISEX
        if isinstance(value, str):
            lowered = value.lower()
            return lowered if lowered in TargetGender._value2member_map_ else TargetGender.UNISEX
        return value

    @field_validator("brand", "primary_color", mode="before")
    @classmethod
    def _coerce_unknown(cls, value: Any) -> Any:
        return "unknown" if value in (None, "") else value


class CompleteEvent(_StreamModel):
    total_products: int = Field(default=0, alias="totalProducts")
    processing_time: float | None = Field(default=None, alias="processingTime")
    usage: dict[str, Any] | None = None


class ErrorEvent(_StreamModel):
    message: str
    code: str

    @field_validator("code", mode="before")
    @classmethod
    def _stringify_code(cls, value: Any) -> str:
        return str(value)


StreamEvent = Union[ProductEvent, CompleteEvent, ErrorEvent]

_TAGGED_MODELS: dict[str, type[_StreamModel]] = {
    "product": ProductEvent,
    "complete": CompleteEvent,
    "error": ErrorEvent,
}


def classify_payload(payload: dict[str, Any]) -> StreamEvent | None:
    """Turn one decoded ``data:`` payload into a typed event.

    An explicit ``type`` tag wins. Untagged payloads fall back to shape
    sniffing: name+category+iconCategory is a product, totalProducts or
    processingTime marks completion, message+code is an error. Anything else
    returns ``None``.
    """

    tag = payload.get("type")
    if isinstance(tag, str) and tag.lower() in _TAGGED_MODELS:
        body = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        return _TAGGED_MODELS[tag.lower()].model_validate(body)  # type: ignore[return-value]
    if "name" in payload and "category" in payload and "iconCategory" in payload:
        return ProductEvent.model_validate(payload)
    if "totalProducts" in payload or "processingTime" in payload:
        return CompleteEvent.model_validate(payload)
    if "message" in payload and "code" in payload:
        return ErrorEvent.model_validate(payload)
    return None


def parse_event_line(line: str) -> StreamEvent | None:
    """Parse a single event-stream line; keep-alives and bad payloads yield ``None``."""

    stripped = line.strip()
    if not stripped or stripped.startswith(":") or stripped.startswith("event:"):
        return None
    if not stripped.startswith("data:"):
        return None
    raw = stripped[len("data:") :].strip()
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("stream_payload_unparseable", error=str(exc), payload=raw[:200])
        return None
    if not isinstance(payload, dict):
        logger.warning("stream_payload_not_object", payload=raw[:200])
        return None
    try:
        event = classify_payload(payload)
    except ValidationError as exc:
        logger.warning("stream_payload_invalid", error=str(exc), payload=raw[:200])
        return None
    if event is None:
        logger.debug("stream_payload_unclassified", keys=sorted(payload))
    return event


__all__ = [
    "Category",
    "CompleteEvent",
    "ErrorEvent",
    "ProductEvent",
    "StreamEvent",
    "TargetGender",
    "classify_payload",
    "parse_event_line",
]

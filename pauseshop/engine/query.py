"""Search term synthesis, validation and provider URL shaping."""

from __future__ import annotations

import random
import re
import string
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import urlencode

from ..config import ProviderConfig
from .events import Category, ProductEvent, TargetGender

WEARABLE_CATEGORIES = frozenset({Category.CLOTHING, Category.FOOTWEAR, Category.ACCESSORIES})
UNKNOWN = "unknown"
_SPECIAL_CHARACTERS = re.compile(r"[<>{}\[\]\\]")
_BASE36 = string.digits + string.ascii_uppercase


@dataclass(slots=True)
class TermValidation:
    is_valid: bool
    processed_terms: str
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SearchQuery:
    """A validated search ready for a provider's dispatcher."""

    id: str
    provider: str
    domain: str
    search_url: str
    search_terms: str
    product: ProductEvent | None = None
    warnings: list[str] = field(default_factory=list)


def optimize_search_terms(product: ProductEvent) -> str:
    if product.search_terms and product.search_terms.strip():
        return product.search_terms.strip()

    parts: list[str] = []
    if product.category in WEARABLE_CATEGORIES and product.target_gender is not TargetGender.UNISEX:
        parts.append(product.target_gender.value)

    color = product.primary_color.strip()
    use_color = bool(color) and color.lower() != UNKNOWN
    if use_color:
        parts.append(color)

    name = product.name.strip()
    if use_color and color.lower() in name.lower():
        name = name.lower().replace(color.lower(), "", 1)
    name = " ".join(name.split())
    if name:
        parts.append(name)

    brand = product.brand.strip()
    if brand and brand.lower() != UNKNOWN and brand.lower() not in name.lower():
        parts.append(brand)

    parts.extend(feature.strip() for feature in product.features[:2] if feature.strip())
    return " ".join(parts).strip()


def validate_search_terms(terms: str, max_length: int) -> TermValidation:
    warnings: list[str] = []
    processed = terms.strip()
    if not processed:
        return TermValidation(False, "", ["Empty search terms"])

    stripped = _SPECIAL_CHARACTERS.sub("", processed)
    if len(stripped) != len(processed):
        warnings.append("Removed special characters from search terms")
    processed = stripped.strip()

    if len(processed) > max_length:
        processed = processed[:max_length].strip()
        last_space = processed.rfind(" ")
        if last_space > max_length * 0.8:
            processed = processed[:last_space]
        warnings.append(f"Truncated search terms to {max_length} characters")

    if not processed:
        return TermValidation(False, "", warnings + ["Empty search terms"])
    return TermValidation(True, processed, warnings)


# ----------------------------------------------------------------------
# URL shaping
# ----------------------------------------------------------------------
def _random_crid(length: int = 13) -> str:
    return "".join(random.choice(_BASE36) for _ in range(length))


def shape_amazon_url(terms: str, domain: str) -> str:
    # crid/sprefix/ref mimic a query typed into the search box
    params = {
        "k": terms,
        "crid": _random_crid(),
        "sprefix": f"{terms},aps,132",
        "ref": "nb_sb_noss_1",
    }
    return f"https://www.{domain}/s?{urlencode(params)}"


def shape_google_url(terms: str, domain: str) -> str:
    return f"https://www.{domain}/search?{urlencode({'q': terms, 'tbm': 'isch'})}"


URL_SHAPERS: dict[str, Callable[[str, str], str]] = {
    "amazon": shape_amazon_url,
    "google": shape_google_url,
}


def _query_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def query_for_terms(
    terms: str, config: ProviderConfig, product: ProductEvent | None = None
) -> SearchQuery | None:
    """Validate free-text terms and shape them into a provider query."""

    validation = validate_search_terms(terms, config.max_search_term_length)
    if not validation.is_valid:
        return None
    shaper = URL_SHAPERS[config.url_style]
    return SearchQuery(
        id=_query_id(),
        provider=config.name,
        domain=config.domain,
        search_url=shaper(validation.processed_terms, config.domain),
        search_terms=validation.processed_terms,
        product=product,
        warnings=validation.warnings,
    )


def build_search_query(product: ProductEvent, config: ProviderConfig) -> SearchQuery | None:
    return query_for_terms(optimize_search_terms(product), config, product=product)


__all__ = [
    "SearchQuery",
    "TermValidation",
    "URL_SHAPERS",
    "WEARABLE_CATEGORIES",
    "build_search_query",
    "optimize_search_terms",
    "query_for_terms",
    "shape_amazon_url",
    "shape_google_url",
    "validate_search_terms",
]

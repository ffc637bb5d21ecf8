"""Ordered-fallback extraction of product cards from search result HTML."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from urllib.parse import quote, urlparse

import structlog
from selectolax.lexbor import LexborHTMLParser, LexborNode

from ..config import ContainerPattern, ExtractionPatterns

_PRICE_PATTERN = re.compile(r"[$€£¥]?\s*((?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{1,2})?)")
_NON_DIGITS = re.compile(r"\D")


@dataclass(slots=True)
class ScrapedProduct:
    """Normalised search hit; ``product_url`` is built from ``item_id``, never scraped."""

    item_id: str
    image_url: str
    product_url: str
    position: int
    price: float | None = None
    id: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "image_url": self.image_url,
            "product_url": self.product_url,
            "position": self.position,
            "price": self.price,
        }


def parse_price_text(text: str | None) -> float | None:
    if not text:
        return None
    match = _PRICE_PATTERN.search(text)
    if not match:
        return None
    value = float(match.group(1).replace(",", ""))
    return value if math.isfinite(value) else None


def page_origin(url: str) -> str:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Base URL has no origin: {url!r}")
    return f"{parsed.scheme}://{parsed.netloc}"


class ExtractionEngine:
    """Segment result containers and pull image, price and canonical URL per item."""

    def __init__(
        self,
        patterns: ExtractionPatterns,
        max_products: int = 50,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.patterns = patterns
        self.max_products = max_products
        self.logger = logger or structlog.get_logger("pauseshop.extraction")

    def extract(self, html: str, base_url: str, query_id: str = "") -> list[ScrapedProduct]:
        if not html or not html.strip():
            return []
        origin = page_origin(base_url)
        tree = LexborHTMLParser(html)
        pattern, containers = self._segment(tree)
        if pattern is None:
            self.logger.info("no_containers_found", base_url=base_url)
            return []

        products: list[ScrapedProduct] = []
        seen: set[str] = set()
        for node in containers:
            if len(products) >= self.max_products:
                break
            item_id = (node.attributes.get(pattern.id_attribute) or "").strip()
            if not item_id or item_id in seen:
                continue
            image_url = self._extract_image(node)
            if image_url is None:
                self.logger.debug("container_without_image", item_id=item_id)
                continue
            seen.add(item_id)
            products.append(
                ScrapedProduct(
                    item_id=item_id,
                    image_url=image_url,
                    product_url=self._canonical_url(origin, item_id),
                    position=len(products) + 1,
                    price=self._extract_price(node),
                    id=query_id or item_id,
                )
            )
        self.logger.debug(
            "extraction_finished",
            pattern=pattern.name,
            containers=len(containers),
            products=len(products),
        )
        return products

    # ------------------------------------------------------------------
    def _segment(self, tree: LexborHTMLParser) -> tuple[ContainerPattern | None, list[LexborNode]]:
        for pattern in self.patterns.containers:
            nodes = tree.css(pattern.selector)
            if nodes:
                return pattern, nodes
        return None, []

    def _extract_image(self, container: LexborNode) -> str | None:
        for selector in self.patterns.image:
            css_selector, mode = self._split_selector(selector)
            for node in container.css(css_selector):
                candidate = self._read(node, mode)
                if candidate and self.is_valid_image_url(candidate):
                    return candidate
        return None

    def _extract_price(self, container: LexborNode) -> float | None:
        for selector in self.patterns.offscreen_price:
            css_selector, mode = self._split_selector(selector)
            node = container.css_first(css_selector)
            price = parse_price_text(self._read(node, mode)) if node else None
            if price is not None:
                return price
        return self._whole_fraction_price(container)

    def _whole_fraction_price(self, container: LexborNode) -> float | None:
        whole = self._first_text(container, self.patterns.price_whole)
        if not whole:
            return None
        whole_digits = _NON_DIGITS.sub("", whole)
        if not whole_digits:
            return None
        fraction_digits = _NON_DIGITS.sub("", self._first_text(container, self.patterns.price_fraction) or "")
        value = float(f"{whole_digits}.{fraction_digits or '00'}")
        return value if math.isfinite(value) else None

    def _first_text(self, container: LexborNode, selectors: list[str]) -> str | None:
        for selector in selectors:
            css_selector, mode = self._split_selector(selector)
            node = container.css_first(css_selector)
            if node is None:
                continue
            value = self._read(node, mode)
            if value:
                return value
        return None

    def _canonical_url(self, origin: str, item_id: str) -> str:
        return origin + self.patterns.product_path.format(item_id=quote(item_id, safe=""))

    def is_valid_image_url(self, url: str) -> bool:
        parsed = urlparse(url.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return False
        lowered = url.lower()
        if any(fragment in lowered for fragment in self.patterns.image_cdn_fragments):
            return True
        return parsed.path.lower().endswith(tuple(self.patterns.image_extensions))

    @staticmethod
    def _read(node: LexborNode, mode: str) -> str | None:
        if mode.startswith("attr:"):
            value = node.attributes.get(mode.split(":", 1)[1])
        elif mode == "html":
            value = node.html
        else:
            value = node.text(separator=" ", strip=True)
        return value.strip() if value else None

    @staticmethod
    def _split_selector(selector: str) -> tuple[str, str]:
        if "::" in selector:
            css, mode = selector.split("::", 1)
            return css.strip(), mode.strip().lower()
        return selector.strip(), "text"


__all__ = ["ExtractionEngine", "ScrapedProduct", "page_origin", "parse_price_text"]

from __future__ import annotations

import pytest
from selectolax.lexbor import LexborHTMLParser

import pauseshop.engine.extraction as extraction
from pauseshop.config import amazon_patterns, google_patterns
from pauseshop.engine.extraction import ExtractionEngine, page_origin, parse_price_text

BASE_URL = "https://www.amazon.com/s?k=desk+lamp"


@pytest.fixture
def engine() -> ExtractionEngine:
    return ExtractionEngine(amazon_patterns(), max_products=50)


def test_duplicate_item_ids_are_suppressed(engine, pages) -> None:
    html = pages.page(pages.card("B0AAAAAAA1"), pages.card("B0AAAAAAA1"), pages.card("B0AAAAAAA2"))
    products = engine.extract(html, BASE_URL, query_id="q-1")
    assert [product.item_id for product in products] == ["B0AAAAAAA1", "B0AAAAAAA2"]
    assert [product.position for product in products] == [1, 2]
    assert all(product.id == "q-1" for product in products)


def test_screen_reader_price_beats_whole_fraction(engine, pages) -> None:
    html = pages.page(pages.card("B0PRICE001", offscreen="$12.99", whole="13", fraction="50"))
    [product] = engine.extract(html, BASE_URL)
    assert product.price == 12.99


def test_whole_fraction_price_used_as_fallback(engine, pages) -> None:
    html = pages.page(pages.card("B0PRICE002", whole="1,299.", fraction="99"))
    [product] = engine.extract(html, BASE_URL)
    assert product.price == 1299.99


def test_price_is_optional(engine, pages) -> None:
    [product] = engine.extract(pages.page(pages.card("B0NOPRICE1")), BASE_URL)
    assert product.price is None


def test_canonical_url_built_from_origin_and_item_id(engine, pages) -> None:
    [product] = engine.extract(pages.page(pages.card("B0CANON001")), BASE_URL)
    assert product.product_url == "https://www.amazon.com/dp/B0CANON001"
    assert product.image_url == pages.image


def test_container_without_valid_image_is_dropped(engine, pages) -> None:
    html = pages.page(
        pages.card("B0NOIMAGE1", image=None),
        pages.card("B0BADIMAGE", image="data:image/gif;base64,R0lGODlhAQABAAAAACw="),
        pages.card("B0GOODIMG1"),
    )
    products = engine.extract(html, BASE_URL)
    assert [product.item_id for product in products] == ["B0GOODIMG1"]
    assert products[0].position == 1


def test_image_chain_falls_through_to_lazy_source(engine) -> None:
    html = (
        '<div role="listitem" data-asin="B0LAZY0001" data-component-type="s-search-result">'
        '<img class="s-image" src="https://example.org/spacer.gif">'
        '<img data-src="https://m.media-amazon.com/images/I/lazy.jpg">'
        "</div>"
    )
    [product] = engine.extract(html, BASE_URL)
    assert product.image_url == "https://m.media-amazon.com/images/I/lazy.jpg"


def test_legacy_and_permissive_container_patterns(engine) -> None:
    legacy = (
        '<div data-component-type="s-search-result" data-asin="B0LEGACY01">'
        '<img class="s-image" src="https://m.media-amazon.com/images/I/a.jpg"></div>'
    )
    permissive = '<li data-asin="B0LOOSE001"><img class="s-image" src="https://cdn.example.org/item.webp"></li>'
    assert [p.item_id for p in engine.extract(legacy, BASE_URL)] == ["B0LEGACY01"]
    assert [p.item_id for p in engine.extract(permissive, BASE_URL)] == ["B0LOOSE001"]


def test_empty_item_id_is_skipped(engine, pages) -> None:
    html = pages.page(pages.card(""), pages.card("B0REAL0001"))
    assert [p.item_id for p in engine.extract(html, BASE_URL)] == ["B0REAL0001"]


def test_results_are_capped(pages) -> None:
    engine = ExtractionEngine(amazon_patterns(), max_products=2)
    html = pages.page(*(pages.card(f"B0CAP0000{index}") for index in range(5)))
    products = engine.extract(html, BASE_URL)
    assert len(products) == 2
    assert [product.position for product in products] == [1, 2]


def test_no_containers_yields_empty_list(engine) -> None:
    assert engine.extract("<html><body><p>nothing here</p></body></html>", BASE_URL) == []
    assert engine.extract("", BASE_URL) == []


def test_google_image_results() -> None:
    engine = ExtractionEngine(google_patterns())
    html = (
        '<div data-docid="doc-1" data-lpage="https://shop.example.com/p/1">'
        '<img src="https://encrypted-tbn0.gstatic.com/images?q=tbn:ANd9Gc1"></div>'
        '<div data-docid="doc-2" data-lpage="https://shop.example.com/p/2">'
        '<img src="data:image/png;base64,AAAA"></div>'
    )
    [product] = engine.extract(html, "https://www.google.com/search?q=lamp&tbm=isch")
    assert product.item_id == "doc-1"
    assert product.product_url == "https://www.google.com/imgres?docid=doc-1"
    assert product.price is None


def test_image_url_validation(engine) -> None:
    assert engine.is_valid_image_url("https://m.media-amazon.com/images/I/x")
    assert engine.is_valid_image_url("https://cdn.example.org/a/b.JPEG")
    assert not engine.is_valid_image_url("https://cdn.example.org/a/b.gif")
    assert not engine.is_valid_image_url("ftp://images-amazon.com/x.jpg")
    assert not engine.is_valid_image_url("/relative/path.jpg")


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("$12.99", 12.99),
        ("$1,234.56", 1234.56),
        ("€ 45", 45.0),
        ("Price: £7.5 each", 7.5),
        ("", None),
        ("free", None),
    ],
)
def test_parse_price_text(text, expected) -> None:
    assert parse_price_text(text) == expected


def test_page_origin() -> None:
    assert page_origin("https://www.amazon.com/s?k=x") == "https://www.amazon.com"
    with pytest.raises(ValueError):
        page_origin("not a url")


def test_pages_are_parsed_with_lexbor_backend(engine, pages, monkeypatch) -> None:
    parsed: list[str] = []

    def parser(html: str) -> LexborHTMLParser:
        parsed.append(html)
        return LexborHTMLParser(html)

    monkeypatch.setattr(extraction, "LexborHTMLParser", parser)
    html = pages.page(pages.card("B0LEXBOR01"))
    products = engine.extract(html, BASE_URL)
    assert parsed == [html]
    assert [product.item_id for product in products] == ["B0LEXBOR01"]

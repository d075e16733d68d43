"""Tests for HTML parser utilities."""

import pytest

from sturdywcdl.utils.parser import HTMLParser, find_link, url_origin


class TestFindLink:
    """Tests for find_link."""

    @pytest.fixture
    def page(self):
        return HTMLParser(
            """
            <html><body>
                <img id="relative" src="/img.png">
                <img id="absolute" src="https://test.com/img.png">
                <img id="nosrc" alt="lazy">
                <img id="padded" src="  /padded.png ">
                <a class="next" href="/comic/2">Next</a>
                <a class="nohref">Nowhere</a>
            </body></html>
            """
        )

    def test_no_match(self, page):
        assert find_link(page, "#missing", "src", "https://test.com") is None

    def test_missing_attribute(self, page):
        assert find_link(page, "#nosrc", "src", "https://test.com") is None

    def test_relative_link(self, page):
        assert find_link(page, "#relative", "src", "https://test.com") == "https://test.com/img.png"

    def test_absolute_link(self, page):
        assert find_link(page, "#absolute", "src", "https://test.com") == "https://test.com/img.png"

    def test_absolute_link_on_other_host(self, page):
        assert (
            find_link(page, "#absolute", "src", "https://cdn.example.org")
            == "https://test.com/img.png"
        )

    def test_href(self, page):
        assert find_link(page, "a.next", "href", "https://test.com") == "https://test.com/comic/2"

    def test_anchor_without_href(self, page):
        assert find_link(page, "a.nohref", "href", "https://test.com") is None

    def test_whitespace_is_stripped(self, page):
        assert find_link(page, "#padded", "src", "https://test.com") == "https://test.com/padded.png"

    @pytest.mark.parametrize("value", ["http://[bad/img.png", "https://[::1/x"])
    def test_unparseable_link(self, value):
        page = HTMLParser(f'<img src="{value}"><a class="next" href="{value}">n</a>')
        assert find_link(page, "img", "src", "https://test.com") is None
        assert find_link(page, "a.next", "href", "https://test.com") is None

    def test_first_match_wins(self):
        page = HTMLParser('<a href="/1">one</a><a href="/2">two</a>')
        assert find_link(page, "a", "href", "https://test.com") == "https://test.com/1"

    def test_works_with_any_queryable_document(self):
        class Element(dict):
            pass

        class Document:
            def select_one(self, selector):
                return Element(src="/x.png") if selector == "img" else None

        assert find_link(Document(), "img", "src", "https://test.com") == "https://test.com/x.png"
        assert find_link(Document(), "a", "href", "https://test.com") is None


class TestHTMLParser:
    """Tests for HTMLParser class."""

    def test_select_one(self):
        parser = HTMLParser('<div class="panel"><img src="/a.png"></div>')
        assert parser.select_one(".panel img") is not None
        assert parser.select_one(".missing") is None

    def test_parses_bytes_with_declared_encoding(self):
        markup = '<html><head><meta charset="iso-8859-1"></head><body><a href="/caf\xe9">x</a></body></html>'
        parser = HTMLParser(markup.encode("iso-8859-1"))
        assert parser.select_one("a").get("href") == "/caf\xe9"

    def test_find_link_uses_base_url(self):
        parser = HTMLParser('<a class="next" href="/comic/3">Next</a>', "https://test.com")
        assert parser.find_link("a.next", "href") == "https://test.com/comic/3"


class TestUrlOrigin:
    """Tests for url_origin."""

    def test_strips_path_and_query(self):
        assert url_origin("https://test.com/comic/1?x=1#top") == "https://test.com"

    def test_keeps_port(self):
        assert url_origin("http://test.com:8080/comic") == "http://test.com:8080"

    @pytest.mark.parametrize("url", ["/comic/1", "test.com/comic", ""])
    def test_rejects_relative(self, url):
        with pytest.raises(ValueError):
            url_origin(url)

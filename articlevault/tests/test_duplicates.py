"""
Tests for duplicate URL detection.
"""

import pytest

from articlevault.duplicates import are_duplicates, normalize_url


class TestNormalizeUrl:

    def test_lowercases_and_strips_fragment(self):
        assert normalize_url("HTTPS://Example.com/Post#section") == "https://example.com/post"

    def test_strips_trailing_slash(self):
        assert normalize_url("https://example.com/post/") == "https://example.com/post"

    def test_keeps_query_by_default(self):
        assert normalize_url("https://example.com/a?id=1") == "https://example.com/a?id=1"

    def test_drop_query(self):
        assert normalize_url("https://example.com/a?id=1", drop_query=True) == "https://example.com/a"

    def test_unparseable_input_is_lowercased(self):
        assert normalize_url("Not A URL") == "not a url"

    @pytest.mark.parametrize("url", [
        "https://Example.com/a/b/?x=1#frag",
        "http://example.com/",
        "https://example.com/a?utm_source=news",
        "weird input/",
        "https://example.com",
        "https://example.com/x?/",
        "https://example.com/x?a=1#/",
    ])
    def test_idempotent(self, url):
        once = normalize_url(url)
        assert normalize_url(once) == once
        dropped = normalize_url(url, drop_query=True)
        assert normalize_url(dropped, drop_query=True) == dropped


class TestAreDuplicates:

    def test_fragment_only_difference(self):
        assert are_duplicates("https://example.com/a", "https://example.com/a#comments")

    def test_tracking_query_difference(self):
        assert are_duplicates("https://example.com/a?utm_source=x", "https://example.com/a")

    def test_case_and_trailing_slash(self):
        assert are_duplicates("https://EXAMPLE.com/A/", "https://example.com/a")

    def test_different_paths(self):
        assert not are_duplicates("https://example.com/a", "https://example.com/b")

    def test_different_hosts(self):
        assert not are_duplicates("https://example.com/a", "https://example.org/a")

    def test_symmetric(self):
        a, b = "https://example.com/a?ref=home", "https://example.com/a/"
        assert are_duplicates(a, b) == are_duplicates(b, a)

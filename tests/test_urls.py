"""Tests for URL normalization."""

import pytest

from siteaudit.urls import (
    hostname_of,
    is_skippable_href,
    normalize_url,
    resolve_link,
    same_host,
)


class TestNormalizeUrl:
    """Test cases for normalize_url."""

    def test_equivalent_forms_normalize_identically(self):
        """Test case, query order, trailing slash and fragment differences collapse."""
        a = normalize_url("https://EX.com/a/?b=2&a=1")
        b = normalize_url("https://ex.com/a?a=1&b=2")
        c = normalize_url("https://ex.com/a/?a=1&b=2#frag")

        assert a == b == c == "https://ex.com/a?a=1&b=2"

    @pytest.mark.parametrize("url", [
        "https://example.com",
        "http://Example.COM:80/Path/?z=1&a=2#x",
        "https://example.com:8443/a/b/",
        "https://user:pw@example.com/x?b=&a",
        "http://[::1]:8080/",
        "https://example.com/search?q=hello%20world&q=a",
    ])
    def test_idempotent(self, url):
        """Test normalizing twice gives the same result as once."""
        once = normalize_url(url)
        assert once is not None
        assert normalize_url(once) == once

    def test_default_ports_removed(self):
        """Test default ports are dropped and others kept."""
        assert normalize_url("http://example.com:80/a") == "http://example.com/a"
        assert normalize_url("https://example.com:443/a") == "https://example.com/a"
        assert normalize_url("https://example.com:8443/a") == "https://example.com:8443/a"

    def test_root_keeps_slash(self):
        """Test the root path is always '/'."""
        assert normalize_url("https://example.com") == "https://example.com/"
        assert normalize_url("https://example.com/") == "https://example.com/"

    def test_path_case_preserved(self):
        """Test only scheme and host are lowercased."""
        assert normalize_url("HTTPS://Example.com/About") == "https://example.com/About"

    def test_query_sorted_by_key_then_value(self):
        """Test repeated keys are ordered by value."""
        assert normalize_url("https://ex.com/?b=1&a=2&a=1") == "https://ex.com/?a=1&a=2&b=1"

    @pytest.mark.parametrize("url", [
        "ftp://example.com/file",
        "mailto:someone@example.com",
        "/relative/path",
        "not a url",
        "https://",
        "http://example.com:99999/",
        "",
    ])
    def test_invalid_returns_none(self, url):
        """Test non-http(s) or malformed input returns None."""
        assert normalize_url(url) is None

    def test_non_string_returns_none(self):
        """Test non-string input returns None."""
        assert normalize_url(None) is None


class TestLinkHelpers:
    """Test cases for href resolution and host helpers."""

    @pytest.mark.parametrize("href", [
        "javascript:void(0)",
        "mailto:a@b.com",
        "tel:+123",
        "data:text/plain,hi",
        "#section",
        "",
        None,
    ])
    def test_skippable_hrefs(self, href):
        """Test non-navigational hrefs are skipped."""
        assert is_skippable_href(href) is True

    def test_resolve_relative_link(self):
        """Test relative hrefs resolve against the page URL."""
        assert resolve_link("../b/?y=2&x=1#top", "https://ex.com/a/page") == "https://ex.com/b?x=1&y=2"

    def test_resolve_skips_javascript(self):
        """Test javascript: hrefs resolve to None."""
        assert resolve_link("javascript:alert(1)", "https://ex.com/") is None

    def test_same_host(self):
        """Test host comparison ignores case and requires an exact match."""
        assert same_host("https://Example.com/x", "example.com")
        assert not same_host("https://sub.example.com/x", "example.com")
        assert not same_host("not a url", "example.com")

    def test_hostname_of(self):
        """Test hostname extraction."""
        assert hostname_of("https://Example.com:8080/a") == "example.com"
        assert hostname_of("/relative") is None

from datetime import datetime, timezone

import pytest

from email_discovery.config import DEFAULT_LINK_PATTERNS
from email_discovery.errors import ExtractionError
from email_discovery.extraction import (
    candidate_from_address,
    canonicalize_url,
    categorize_url,
    domain_from_url,
    find_crawl_links,
    is_valid_syntax,
    iter_candidates,
    normalize_address,
)
from email_discovery.models import PageContent


def make_page(url: str, text: str) -> PageContent:
    return PageContent(
        url=url,
        domain=domain_from_url(url),
        raw_text=text,
        fetched_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def test_contact_page_sentence_yields_one_candidate() -> None:
    page = make_page(
        "https://example.org/contact", "Contact us: info@example.org or call 555-1234"
    )
    candidates = list(iter_candidates(page))
    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate.address == "info@example.org"
    assert candidate.domain == "example.org"
    assert candidate.local_part == "info"
    assert candidate.source_category == "contact page"
    assert candidate.source_url == "https://example.org/contact"
    assert candidate.obfuscated is False


def test_plain_token_without_at_yields_nothing() -> None:
    assert list(iter_candidates(make_page("https://example.org/", "not-an-email"))) == []


def test_candidates_follow_page_order_and_dedupe_per_page() -> None:
    page = make_page(
        "https://example.org/",
        "<p>b@example.org</p><p>A@Example.org</p><p>b@example.org</p>",
    )
    assert [c.address for c in iter_candidates(page)] == ["b@example.org", "a@example.org"]


def test_invisible_characters_are_stripped() -> None:
    page = make_page("https://example.org/", "Write to in\u200bfo@Example.ORG\ufeff today")
    assert [c.address for c in iter_candidates(page)] == ["info@example.org"]


def test_asset_names_and_placeholders_are_rejected() -> None:
    html = '<img src="logo@2x.png"> <p>logo@2x.png your@email.com name@domain.com</p>'
    assert list(iter_candidates(make_page("https://example.org/", html))) == []


def test_scripts_and_comments_are_ignored() -> None:
    html = '<script>var e = "dev@example.org";</script><!-- ops@example.org --><p>hi</p>'
    assert list(iter_candidates(make_page("https://example.org/", html))) == []


def test_mailto_links_in_footer_get_footer_category() -> None:
    html = """
    <html><head><title>Home</title></head>
    <body>
      <p>Welcome</p>
      <footer><a href="mailto:Team@example.com?subject=Hello">Email us</a></footer>
    </body></html>
    """
    candidates = list(iter_candidates(make_page("https://example.com/", html)))
    assert [(c.address, c.source_category) for c in candidates] == [
        ("team@example.com", "footer")
    ]


def test_heading_category_used_when_path_has_no_keyword() -> None:
    html = "<h1>Staff Directory</h1><p>jane.doe@example.com</p>"
    candidates = list(iter_candidates(make_page("https://example.com/p/42", html)))
    assert candidates[0].source_category == "staff directory"


def test_default_category_is_page_content() -> None:
    candidates = list(iter_candidates(make_page("https://example.com/", "x@example.com")))
    assert candidates[0].source_category == "page content"


def test_obfuscated_and_encoded_addresses_are_flagged() -> None:
    html = "<p>Reach jane [at] example [dot] org today</p><p>info&#64;example.org</p>"
    candidates = list(iter_candidates(make_page("https://example.org/", html)))
    assert [(c.address, c.obfuscated) for c in candidates] == [
        ("jane@example.org", True),
        ("info@example.org", True),
    ]


def test_binary_content_raises_extraction_error() -> None:
    with pytest.raises(ExtractionError):
        list(iter_candidates(make_page("https://example.org/", "\x00\x01PNG")))


def test_extraction_is_idempotent() -> None:
    page = make_page("https://example.org/staff", "<p>a@example.org b@example.org</p>")
    assert list(iter_candidates(page)) == list(iter_candidates(page))


def test_syntax_rules() -> None:
    assert is_valid_syntax("first.last+tag@mail.example.co.uk") is True
    assert is_valid_syntax("a..b@example.org") is False
    assert is_valid_syntax(".a@example.org") is False
    assert is_valid_syntax("a@example") is False
    assert is_valid_syntax("a@-bad.org") is False
    assert is_valid_syntax("a@b@example.org") is False
    assert is_valid_syntax("not-an-email") is False


def test_normalize_and_wrap_uploaded_address() -> None:
    assert normalize_address("  Admin@Example.ORG\u200b ") == "admin@example.org"
    candidate = candidate_from_address(" Not-An-Email ")
    assert candidate.address == "not-an-email"
    assert candidate.domain == ""
    assert candidate.source_category == "uploaded list"


def test_categorize_url_keywords() -> None:
    assert categorize_url("https://example.com/contact-us") == "contact page"
    assert categorize_url("https://example.com/about/team") == "staff directory"
    assert categorize_url("https://example.com/careers") == "careers page"
    assert categorize_url("https://example.com/press") == "press page"
    assert categorize_url("https://example.com/blog/post") == "page content"


def test_find_crawl_links_keeps_same_site_pattern_matches() -> None:
    html = """
    <a href="/contact">Contact</a>
    <a href="/contact#form">Contact again</a>
    <a href="/about-us">About</a>
    <a href="/blog">Blog</a>
    <a href="https://other.com/contact">Elsewhere</a>
    <a href="https://www.example.com/team">Team</a>
    <a href="/press/kit.pdf">Kit</a>
    <a href="mailto:team@example.com">Mail</a>
    """
    links = find_crawl_links(html, "https://example.com/", DEFAULT_LINK_PATTERNS)
    assert links == [
        "https://example.com/contact",
        "https://example.com/about-us",
        "https://www.example.com/team",
    ]


def test_url_helpers() -> None:
    assert (
        canonicalize_url("/about#team", "https://example.com/home") == "https://example.com/about"
    )
    assert domain_from_url("https://Sub.Example.com/path") == "sub.example.com"

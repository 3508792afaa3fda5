"""Pure extraction and URL normalization utilities."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from urllib.parse import unquote, urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from .errors import ExtractionError
from .models import EmailCandidate, PageContent
from .validation import is_valid_hostname

DEFAULT_CATEGORY = "page content"
FOOTER_CATEGORY = "footer"
UPLOAD_CATEGORY = "uploaded list"

# First keyword hit wins; order puts the more specific page kinds first.
CATEGORY_KEYWORDS = (
    ("contact", "contact page"),
    ("staff", "staff directory"),
    ("team", "staff directory"),
    ("people", "staff directory"),
    ("directory", "staff directory"),
    ("careers", "careers page"),
    ("jobs", "careers page"),
    ("support", "support page"),
    ("help", "support page"),
    ("press", "press page"),
    ("media", "press page"),
    ("about", "about page"),
)

EMAIL_REGEX = re.compile(
    r"(?<![A-Za-z0-9._%+\-])"
    r"([A-Za-z0-9._%+\-]{1,64}@(?:[A-Za-z0-9\-]{1,63}\.)+[A-Za-z]{2,24})"
    r"(?![A-Za-z0-9\-])"
)
LOCAL_PART_REGEX = re.compile(r"^[a-z0-9._%+\-]{1,64}$")
INVISIBLE_CHARS = re.compile("[\u00ad\u200b-\u200f\u2060-\u2063\ufeff]")
OBFUSCATED_AT = re.compile(r"\s*[\[\(\{<]\s*at\s*[\]\)\}>]\s*", re.IGNORECASE)
OBFUSCATED_DOT = re.compile(r"\s*[\[\(\{<]\s*dot\s*[\]\)\}>]\s*", re.IGNORECASE)

NON_EMAIL_SUFFIXES = frozenset(
    {"png", "jpg", "jpeg", "gif", "svg", "webp", "bmp", "ico", "tif", "tiff", "avif", "css", "js"}
)
PLACEHOLDER_LOCAL_PARTS = frozenset(
    {
        "email",
        "first.last",
        "firstname.lastname",
        "name",
        "someone",
        "user",
        "username",
        "you",
        "your",
        "your.name",
        "youremail",
        "yourname",
    }
)
PLACEHOLDER_DOMAINS = frozenset(
    {"domain.com", "email.com", "yourdomain.com", "yoursite.com", "website.com", "sentry.io"}
)
SKIPPED_TAGS = frozenset({"script", "style", "noscript", "template"})
SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)
LINK_SKIP_SUFFIXES = (".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".zip", ".doc", ".docx")


def canonicalize_url(href: str, base: str) -> str:
    """Resolve relative URLs and strip hash fragments."""
    return urljoin(base, href).split("#", maxsplit=1)[0]


def domain_from_url(url: str) -> str:
    """Extract lowercase hostname from URL."""
    return (urlparse(url).hostname or "").lower()


def strip_invisible(text: str) -> str:
    """Remove zero-width and soft-hyphen characters."""
    return INVISIBLE_CHARS.sub("", text)


def normalize_address(raw: str) -> str:
    """Canonicalize an address: strip invisible characters, trim, lowercase."""
    return strip_invisible(raw).strip().lower()


def is_valid_syntax(address: str) -> bool:
    """Return True when a normalized address matches the accepted grammar."""
    if len(address) > 254 or address.count("@") != 1:
        return False
    local, domain = address.split("@")
    if not LOCAL_PART_REGEX.match(local):
        return False
    if local.startswith(".") or local.endswith(".") or ".." in local:
        return False
    return is_valid_hostname(domain)


def looks_like_noise(address: str) -> bool:
    """Reject asset file names and template placeholders that look like emails."""
    local, _, domain = address.partition("@")
    if domain.rsplit(".", maxsplit=1)[-1] in NON_EMAIL_SUFFIXES:
        return True
    return local in PLACEHOLDER_LOCAL_PARTS or domain in PLACEHOLDER_DOMAINS


def has_obfuscation(text: str) -> bool:
    return bool(OBFUSCATED_AT.search(text))


def deobfuscate(text: str) -> str:
    """Rewrite ``name [at] example [dot] org`` style text into a plain address."""
    text = OBFUSCATED_AT.sub("@", text)
    return OBFUSCATED_DOT.sub(".", text)


def categorize_url(url: str) -> str:
    """Map a URL path onto a source-page category."""
    path = urlparse(url).path.lower()
    return _match_category(path)


def categorize_headings(soup: BeautifulSoup) -> str:
    """Map the page title and top headings onto a source-page category."""
    parts = [tag.get_text(" ", strip=True) for tag in soup.find_all(["title", "h1", "h2"])]
    return _match_category(" ".join(parts).lower())


def _match_category(text: str) -> str:
    for keyword, category in CATEGORY_KEYWORDS:
        if keyword in text:
            return category
    return DEFAULT_CATEGORY


def _in_footer(node: NavigableString | Tag) -> bool:
    for parent in node.parents:
        if parent.name == "footer":
            return True
        marker = " ".join([str(parent.get("id") or ""), *parent.get("class", [])]).lower()
        if "footer" in marker:
            return True
    return False


def _parse(raw_text: str | None, url: str) -> BeautifulSoup:
    if raw_text is None:
        raise ExtractionError(f"No content for {url}")
    if "\x00" in raw_text:
        raise ExtractionError(f"Binary content for {url}")
    try:
        return BeautifulSoup(raw_text, "html.parser")
    except (ParserRejectedMarkup, TypeError) as exc:
        raise ExtractionError(f"Malformed markup for {url}: {exc}") from exc


def _mailto_addresses(href: str) -> list[str]:
    target = unquote(href.split(":", maxsplit=1)[1]).split("?", maxsplit=1)[0]
    return [part.strip() for part in target.split(",") if part.strip()]


def iter_candidates(page: PageContent) -> Iterator[EmailCandidate]:
    """Yield email candidates from a page in document order, once per address.

    Raises ExtractionError lazily when the page content cannot be parsed.
    """
    soup = _parse(page.raw_text, page.url)
    page_category = categorize_url(page.url)
    heading_category = (
        categorize_headings(soup) if page_category == DEFAULT_CATEGORY else page_category
    )
    raw_lower = strip_invisible(page.raw_text).lower()
    seen: set[str] = set()

    def category_for(node: NavigableString | Tag) -> str:
        if page_category != DEFAULT_CATEGORY:
            return page_category
        if _in_footer(node):
            return FOOTER_CATEGORY
        return heading_category

    def build(raw: str, node: NavigableString | Tag, obfuscated: bool) -> EmailCandidate | None:
        address = normalize_address(raw)
        if address in seen or not is_valid_syntax(address) or looks_like_noise(address):
            return None
        seen.add(address)
        return EmailCandidate(
            raw=raw,
            address=address,
            domain=address.split("@", maxsplit=1)[1],
            source_url=page.url,
            source_category=category_for(node),
            obfuscated=obfuscated,
        )

    for node in soup.descendants:
        if isinstance(node, Tag):
            href = str(node.get("href") or "").strip()
            if node.name == "a" and href.lower().startswith("mailto:"):
                for raw in _mailto_addresses(href):
                    encoded = raw.lower() not in raw_lower
                    candidate = build(raw, node, obfuscated=encoded)
                    if candidate:
                        yield candidate
            continue
        if not isinstance(node, NavigableString) or isinstance(node, SKIPPED_STRINGS):
            continue
        if node.parent is not None and node.parent.name in SKIPPED_TAGS:
            continue
        text = strip_invisible(str(node))
        rewritten = False
        if "@" not in text and has_obfuscation(text):
            text = deobfuscate(text)
            rewritten = True
        for match in EMAIL_REGEX.finditer(text):
            raw = match.group(1)
            encoded = rewritten or raw.lower() not in raw_lower
            candidate = build(raw, node, obfuscated=encoded)
            if candidate:
                yield candidate


def candidate_from_address(
    raw: str, *, source_category: str = UPLOAD_CATEGORY, source_url: str = ""
) -> EmailCandidate:
    """Wrap an externally supplied address so it can skip crawling and extraction."""
    address = normalize_address(raw)
    return EmailCandidate(
        raw=raw,
        address=address,
        domain=address.rpartition("@")[2] if "@" in address else "",
        source_url=source_url,
        source_category=source_category,
    )


def dedupe_preserve_order(items: Iterable[str]) -> list[str]:
    """Dedupe values while preserving first-seen order."""
    output: list[str] = []
    seen: set[str] = set()
    for item in items:
        normalized = item.split("#", maxsplit=1)[0].rstrip("/")
        if normalized in seen:
            continue
        seen.add(normalized)
        output.append(item)
    return output


def same_site(host: str, domain: str) -> bool:
    return host.removeprefix("www.") == domain.removeprefix("www.")


def find_crawl_links(html: str, base_url: str, patterns: tuple[str, ...]) -> list[str]:
    """Find same-site links whose path matches one of the crawl link patterns."""
    if not patterns:
        return []
    base_domain = domain_from_url(base_url)
    base_key = base_url.split("#", maxsplit=1)[0].rstrip("/")
    links: list[str] = []
    soup = BeautifulSoup(html or "", "html.parser")
    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if href.lower().startswith(("mailto:", "tel:", "javascript:")):
            continue
        url = canonicalize_url(href, base_url)
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not same_site(
            (parsed.hostname or "").lower(), base_domain
        ):
            continue
        path = parsed.path.lower()
        if path.endswith(LINK_SKIP_SUFFIXES) or url.rstrip("/") == base_key:
            continue
        if any(pattern in path for pattern in patterns):
            links.append(url)
    return dedupe_preserve_order(links)

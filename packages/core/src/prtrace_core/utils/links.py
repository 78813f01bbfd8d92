"""URL and free-text helpers shared by the fetch stages."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

from prtrace_core.errors import PrLinkParseError
from prtrace_core.models import ConfluencePage, PrReference, PullRequestFile, RawPullRequestFile

_PR_PATH_RE = re.compile(r"^/([^/]+)/([^/]+)/pull/(\d+)/?$")
_CONFLUENCE_LINK_RE = re.compile(r"(https?://[^\s)]+(?:confluence|wiki)[^\s)]*)", re.IGNORECASE)
_KEYWORD_TOKEN_RE = re.compile(r"\b[a-zA-Z][a-zA-Z0-9_-]{2,}\b")
_CONTENT_ID_RE = re.compile(r"/rest/api/content/\d+(?:/|$)", re.IGNORECASE)
_PAGES_ID_RE = re.compile(r"/pages/\d+(?:/|$)", re.IGNORECASE)

MAX_KEYWORDS = 60
TRUNCATION_MARKER = "\n[TRUNCATED]"


def unique_strings(values) -> list[str]:
    """Trim, drop empties, dedupe. First occurrence wins."""
    seen: dict[str, None] = {}
    for value in values:
        cleaned = (value or "").strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


def parse_pr_link(pr_link: str) -> PrReference:
    """Parse ``https://{host}/{owner}/{repo}/pull/{number}`` into a PrReference."""
    try:
        parsed = urlparse((pr_link or "").strip())
    except ValueError as e:
        raise PrLinkParseError("PR link is not a valid URL.") from e
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise PrLinkParseError("PR link is not a valid URL.")

    match = _PR_PATH_RE.match(parsed.path)
    if not match:
        raise PrLinkParseError("PR link must match https://{host}/{owner}/{repo}/pull/{number}.")

    owner, repo, number_text = match.groups()
    pr_number = int(number_text)
    if pr_number <= 0:
        raise PrLinkParseError("PR number must be a positive integer.")

    return PrReference(owner=owner, repo=repo, pr_number=pr_number)


def trim_pull_request_files(
    files: list[RawPullRequestFile], max_files: int, max_patch_chars: int
) -> list[PullRequestFile]:
    """Keep the first ``max_files`` files and cap each patch at ``max_patch_chars``."""
    trimmed = []
    for f in files[:max_files]:
        patch = f.patch or ""
        truncated = len(patch) > max_patch_chars
        if truncated:
            patch = patch[:max_patch_chars] + TRUNCATION_MARKER
        trimmed.append(PullRequestFile(path=f.path, patch=patch, truncated=truncated))
    return trimmed


def extract_confluence_links(text_chunks) -> list[str]:
    """Return wiki/Confluence-looking URLs found in the given text chunks."""
    text = "\n".join(chunk for chunk in text_chunks if chunk)
    return list(dict.fromkeys(m.group(0) for m in _CONFLUENCE_LINK_RE.finditer(text)))


def collect_keywords(text_chunks, explicit_keywords=()) -> list[str]:
    """Explicit keywords first, then lowercase tokens of 3+ chars from the text.

    Deduplicated and capped at MAX_KEYWORDS.
    """
    explicit = [k.lower().strip() for k in explicit_keywords if k and k.strip()]
    tokens = [m.group(0) for chunk in text_chunks if chunk for m in _KEYWORD_TOKEN_RE.finditer(chunk.lower())]
    return list(dict.fromkeys(explicit + tokens))[:MAX_KEYWORDS]


def is_confluence_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    if "pageId" in parse_qs(parsed.query, keep_blank_values=True):
        return True

    path = parsed.path.lower()
    if "/wiki/" in path or path.endswith("/wiki"):
        return True
    if _CONTENT_ID_RE.search(path):
        return True
    return any(segment in path for segment in ("/pages/", "/spaces/", "/display/"))


def _query_page_id(url: str) -> str | None:
    try:
        page_ids = parse_qs(urlparse(url).query).get("pageId", [])
    except ValueError:
        return None
    if page_ids and page_ids[0].isdigit():
        return page_ids[0]
    return None


def has_confluence_page_id(value: str) -> bool:
    """True for strong links: URLs that name exactly one page."""
    if _CONTENT_ID_RE.search(value) or _PAGES_ID_RE.search(value):
        return True
    return _query_page_id(value) is not None


def extract_confluence_page_id(url: str) -> str | None:
    match = re.search(r"/(?:pages|rest/api/content)/(\d+)", url)
    if match:
        return match.group(1)
    return _query_page_id(url)


def dedupe_pages(pages: list[ConfluencePage]) -> list[ConfluencePage]:
    """Drop pages whose URL (or id when there is no URL) was already seen."""
    seen: set[str] = set()
    deduped = []
    for page in pages:
        key = page.url or page.id
        if not key or key in seen:
            continue
        seen.add(key)
        deduped.append(page)
    return deduped

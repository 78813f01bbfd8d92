from __future__ import annotations

import html
import logging
import re
from typing import Optional

import requests

from prtrace_core.models import ConfluencePage
from prtrace_core.sources.base import ConfluenceSource
from prtrace_core.sources.http import JsonClient
from prtrace_core.utils.links import extract_confluence_page_id, unique_strings

logger = logging.getLogger(__name__)

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[\s\S]*?</\1>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def resolve_confluence_api_base(domain: str) -> str:
    normalized = domain.strip().rstrip("/")
    if normalized.endswith("/rest/api"):
        return normalized
    if normalized.endswith("/wiki") or "/wiki/" in normalized:
        return f"{normalized}/rest/api"
    return f"{normalized}/wiki/rest/api"


def html_to_text(markup: str) -> str:
    """Reduce Confluence storage-format HTML to a single line of plain text."""
    if not markup:
        return ""
    text = _SCRIPT_STYLE_RE.sub(" ", markup)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text).replace("\xa0", " ")
    return _SPACE_RE.sub(" ", text).strip()


def escape_cql(query: str) -> str:
    return query.replace("\\", "\\\\").replace('"', '\\"')


class RestConfluenceSource(ConfluenceSource):
    """Confluence source backed by the content REST API.

    ``expand_depth`` is accepted for interface compatibility; child pages are
    not followed.
    """

    def __init__(
        self,
        domain: str,
        token: Optional[str] = None,
        email: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self._domain = domain.strip().rstrip("/")
        self._client = JsonClient(
            "Confluence", resolve_confluence_api_base(self._domain), token=token, email=email, session=session
        )

    def fetch_by_urls(self, urls: list[str], expand_depth: int = 0) -> list[ConfluencePage]:
        pages = []
        for url in unique_strings(urls):
            page_id = extract_confluence_page_id(url)
            if not page_id:
                continue
            raw = self._client.get_json(f"content/{page_id}", params={"expand": "body.storage"}, allow_missing=True)
            if raw is None:
                logger.info("Confluence page %s not found, skipping", page_id)
                continue
            pages.append(
                ConfluencePage(
                    id=str(raw.get("id") or page_id),
                    title=raw.get("title") or f"Confluence {page_id}",
                    url=url,
                    content=html_to_text(((raw.get("body") or {}).get("storage") or {}).get("value") or ""),
                    source="pr-link",
                )
            )
        return pages

    def _result_url(self, item: dict) -> str:
        links = item.get("_links") or {}
        webui = links.get("webui")
        if webui:
            return f"{(links.get('base') or self._domain).rstrip('/')}{webui}"
        return f"{self._domain}/pages/{item.get('id', '')}"

    def search(self, query: str, top_k: int, expand_depth: int = 0) -> list[ConfluencePage]:
        normalized = query.strip()
        if not normalized:
            return []

        response = self._client.get_json(
            "content/search",
            params={"cql": f'text ~ "{escape_cql(normalized)}"', "limit": max(1, top_k), "expand": "body.storage"},
        )
        results = (response or {}).get("results") or []
        logger.debug("Confluence search %r returned %d result(s)", normalized, len(results))

        return [
            ConfluencePage(
                id=str(item.get("id", "")),
                title=item.get("title") or "Confluence Page",
                url=self._result_url(item),
                content=html_to_text(((item.get("body") or {}).get("storage") or {}).get("value") or ""),
                source="keyword-query",
            )
            for item in results[: max(1, top_k)]
        ]

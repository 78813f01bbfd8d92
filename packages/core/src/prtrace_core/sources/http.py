"""Minimal JSON-over-HTTP client shared by the Jira and Confluence sources."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from prtrace_core.errors import SourceError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class JsonClient:
    """requests.Session wrapper that authenticates and decodes JSON.

    Authentication: basic auth when an email is configured (Atlassian Cloud
    API tokens), otherwise a bearer token (Data Center personal access
    tokens). Without a token requests are sent anonymously.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        token: Optional[str] = None,
        email: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.provider_name = provider_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token and email:
            self.session.auth = (email, token)
        elif token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def get_json(self, path: str, params: Optional[dict[str, Any]] = None, allow_missing: bool = False):
        """GET ``path`` and return the decoded body.

        Returns None for a 404 when ``allow_missing`` is set; every other
        failure raises SourceError naming the provider and status.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise SourceError(f"{self.provider_name} request to {url} failed: {e}") from e

        if resp.status_code == 404 and allow_missing:
            logger.debug("%s returned 404 for %s", self.provider_name, url)
            return None
        if resp.status_code != 200:
            raise SourceError(f"{self.provider_name} request to {url} failed with status {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise SourceError(f"{self.provider_name} returned a non-JSON body for {url}") from e

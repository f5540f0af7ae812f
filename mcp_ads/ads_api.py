from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .config import AdsSettings
from .credentials import TokenProvider
from .errors import UpstreamError

log = logging.getLogger(__name__)


class AdsSearchClient:
    """One ``googleAds:search`` REST call per ``search()``; no retries, no paging."""

    def __init__(
        self,
        settings: AdsSettings,
        credentials: TokenProvider,
        http: Optional[httpx.Client] = None,
    ):
        self._settings = settings
        self._credentials = credentials
        self._http = http or httpx.Client(timeout=settings.http_timeout)

    @property
    def search_url(self) -> str:
        s = self._settings
        return f"{s.api_base_url}/{s.api_version}/customers/{s.customer_id}/googleAds:search"

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._credentials.token()}",
            "developer-token": self._settings.developer_token,
            "Content-Type": "application/json",
        }
        if self._settings.login_customer_id:
            headers["login-customer-id"] = self._settings.login_customer_id
        return headers

    def search(self, query: str, page_size: int) -> Dict[str, Any]:
        self._settings.require_account()
        headers = self._headers()
        try:
            resp = self._http.post(self.search_url, headers=headers, json={"query": query, "pageSize": page_size})
        except httpx.HTTPError as exc:
            log.warning("ads search transport error customer=%s error=%s", self._settings.customer_id, exc)
            raise UpstreamError(None, str(exc)) from exc

        if not resp.is_success:
            log.warning("ads search failed customer=%s status=%s", self._settings.customer_id, resp.status_code)
            raise UpstreamError(resp.status_code, resp.text)
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(resp.status_code, "Response body is not JSON") from exc

    def close(self) -> None:
        self._http.close()

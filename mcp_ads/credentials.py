from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional, Protocol

import google.auth.exceptions
import google.auth.transport.requests
from google.oauth2 import service_account

from .config import AdsSettings
from .errors import CredentialError

log = logging.getLogger(__name__)

ADS_SCOPE = "https://www.googleapis.com/auth/adwords"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


class TokenProvider(Protocol):
    def token(self) -> str: ...


class ServiceAccountTokenProvider:
    """Exchange service-account material for a short-lived Ads bearer token.

    The material comes from ``GOOGLE_ADS_SERVICE_ACCOUNT_JSON`` or from the
    ``GOOGLE_CLIENT_EMAIL``/``GOOGLE_PRIVATE_KEY`` pair. Credentials are built
    on first use and refreshed only when google-auth reports them invalid.
    """

    def __init__(
        self,
        settings: AdsSettings,
        request_factory: Callable[[], Any] = google.auth.transport.requests.Request,
    ):
        self._settings = settings
        self._request_factory = request_factory
        self._credentials: Optional[service_account.Credentials] = None

    def _service_account_info(self) -> Dict[str, Any]:
        s = self._settings
        if s.service_account_json:
            try:
                creds = json.loads(s.service_account_json)
            except ValueError as exc:
                raise CredentialError("GOOGLE_ADS_SERVICE_ACCOUNT_JSON is not valid JSON") from exc
            if not isinstance(creds, dict):
                raise CredentialError("GOOGLE_ADS_SERVICE_ACCOUNT_JSON must be a JSON object")
            info = {
                "client_email": creds.get("client_email"),
                "private_key": creds.get("private_key"),
                "token_uri": creds.get("token_uri") or DEFAULT_TOKEN_URI,
            }
        elif s.client_email and s.private_key:
            info = {
                "client_email": s.client_email,
                "private_key": s.private_key.replace("\\n", "\n"),
                "token_uri": DEFAULT_TOKEN_URI,
            }
        else:
            raise CredentialError(
                "Missing service account credentials. Set GOOGLE_ADS_SERVICE_ACCOUNT_JSON "
                "or GOOGLE_CLIENT_EMAIL/GOOGLE_PRIVATE_KEY."
            )
        if not info["client_email"] or not info["private_key"]:
            raise CredentialError("Service account material lacks client_email or private_key")
        return info

    def _load(self) -> service_account.Credentials:
        if self._credentials is None:
            info = self._service_account_info()
            try:
                self._credentials = service_account.Credentials.from_service_account_info(
                    info, scopes=[ADS_SCOPE]
                )
            except ValueError as exc:
                raise CredentialError(f"Malformed service account material: {exc}") from exc
            log.info("service account loaded email=%s", info["client_email"])
        return self._credentials

    def token(self) -> str:
        creds = self._load()
        if not creds.valid:
            try:
                creds.refresh(self._request_factory())
            except google.auth.exceptions.GoogleAuthError as exc:
                raise CredentialError(f"Token exchange failed: {exc}") from exc
        if not creds.token:
            raise CredentialError("Failed to obtain access token")
        return creds.token

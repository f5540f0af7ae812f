from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_API_VERSION = "v17"
DEFAULT_API_BASE    = "https://googleads.googleapis.com"

log = logging.getLogger(__name__)


def _digits(cid: Optional[str]) -> str:
    return (cid or "").replace("-", "").strip()


def _timeout(raw: Optional[str], default: float = 30.0) -> float:
    try:
        return float(raw) if raw else default
    except ValueError:
        log.warning("Invalid GOOGLE_ADS_HTTP_TIMEOUT %r; using %s", raw, default)
        return default


@dataclass(frozen=True)
class AdsSettings:
    developer_token: str = ""
    customer_id: str = ""
    login_customer_id: str = ""
    api_version: str = DEFAULT_API_VERSION
    api_base_url: str = DEFAULT_API_BASE
    service_account_json: str = ""
    client_email: str = ""
    private_key: str = ""
    http_timeout: float = 30.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AdsSettings":
        env = os.environ if environ is None else environ
        return cls(
            developer_token=env.get("GOOGLE_ADS_DEVELOPER_TOKEN", "").strip(),
            customer_id=_digits(env.get("GOOGLE_ADS_CUSTOMER_ID")),
            login_customer_id=_digits(env.get("GOOGLE_ADS_LOGIN_CUSTOMER_ID")),
            api_version=env.get("GOOGLE_ADS_API_VERSION", "").strip() or DEFAULT_API_VERSION,
            api_base_url=(env.get("GOOGLE_ADS_API_BASE_URL", "").strip() or DEFAULT_API_BASE).rstrip("/"),
            service_account_json=env.get("GOOGLE_ADS_SERVICE_ACCOUNT_JSON", "").strip(),
            client_email=env.get("GOOGLE_CLIENT_EMAIL", "").strip(),
            private_key=env.get("GOOGLE_PRIVATE_KEY", ""),
            http_timeout=_timeout(env.get("GOOGLE_ADS_HTTP_TIMEOUT")),
        )

    def require_account(self) -> None:
        """Raise ConfigError unless the account-level settings are present."""
        missing = [k for k, v in [
            ("GOOGLE_ADS_DEVELOPER_TOKEN", self.developer_token),
            ("GOOGLE_ADS_CUSTOMER_ID",     self.customer_id),
        ] if not v]
        if missing:
            raise ConfigError(f"Missing required env: {', '.join(missing)}")

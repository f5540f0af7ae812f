import json

import httpx
import pytest

from mcp_ads.ads_api import AdsSearchClient
from mcp_ads.config import AdsSettings
from mcp_ads.errors import ConfigError, CredentialError, UpstreamError

from conftest import StubTokens

def _client(settings, tokens, handler, seen):
    def record(request):
        seen.append(request)
        return handler(request)
    return AdsSearchClient(settings, tokens, http=httpx.Client(transport=httpx.MockTransport(record)))

def test_search_posts_query_with_headers(settings, tokens):
    seen = []
    ads = _client(settings, tokens, lambda r: httpx.Response(200, json={"results": [{"a": 1}]}), seen)
    data = ads.search("SELECT campaign.id FROM campaign", 5)

    assert data == {"results": [{"a": 1}]}
    assert len(seen) == 1
    req = seen[0]
    assert req.method == "POST"
    assert str(req.url) == "https://googleads.googleapis.com/v17/customers/1234567890/googleAds:search"
    assert req.headers["Authorization"] == "Bearer test-token"
    assert req.headers["developer-token"] == "dev-tok"
    assert req.headers["Content-Type"] == "application/json"
    assert "login-customer-id" not in req.headers
    assert json.loads(req.content) == {"query": "SELECT campaign.id FROM campaign", "pageSize": 5}

def test_login_customer_header_when_configured(tokens):
    settings = AdsSettings(developer_token="d", customer_id="1", login_customer_id="9000159936", api_version="v18")
    seen = []
    ads = _client(settings, tokens, lambda r: httpx.Response(200, json={}), seen)
    ads.search("SELECT customer.id FROM customer", 1)
    assert seen[0].headers["login-customer-id"] == "9000159936"
    assert "/v18/customers/1/" in str(seen[0].url)

def test_non_success_raises_upstream_error(settings, tokens):
    seen = []
    ads = _client(settings, tokens, lambda r: httpx.Response(403, text="PERMISSION_DENIED"), seen)
    with pytest.raises(UpstreamError) as ei:
        ads.search("SELECT campaign.id FROM campaign", 5)
    assert ei.value.status == 403
    assert ei.value.detail == "PERMISSION_DENIED"
    assert len(seen) == 1  # no retry

def test_non_json_body_raises_upstream_error(settings, tokens):
    ads = _client(settings, tokens, lambda r: httpx.Response(200, text="<html>"), [])
    with pytest.raises(UpstreamError) as ei:
        ads.search("SELECT campaign.id FROM campaign", 5)
    assert ei.value.status == 200

def test_transport_failure_raises_upstream_error(settings, tokens):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)
    ads = _client(settings, tokens, refuse, [])
    with pytest.raises(UpstreamError) as ei:
        ads.search("SELECT campaign.id FROM campaign", 5)
    assert ei.value.status is None

def test_missing_account_config_fails_before_any_io():
    tokens = StubTokens()
    seen = []
    ads = _client(AdsSettings(), tokens, lambda r: httpx.Response(200, json={}), seen)
    with pytest.raises(ConfigError):
        ads.search("SELECT campaign.id FROM campaign", 5)
    assert tokens.calls == 0
    assert seen == []

def test_credential_failure_makes_no_request(settings):
    class NoTokens:
        def token(self):
            raise CredentialError("Missing service account credentials.")
    seen = []
    ads = _client(settings, NoTokens(), lambda r: httpx.Response(200, json={}), seen)
    with pytest.raises(CredentialError):
        ads.search("SELECT campaign.id FROM campaign", 5)
    assert seen == []

def test_close_releases_http_client(settings, tokens):
    http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
    AdsSearchClient(settings, tokens, http=http).close()
    assert http.is_closed

# Ensure project root is importable
import pathlib, sys
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from mcp_ads.config import AdsSettings
from mcp_ads.rpc import RpcAdapter
from mcp_ads.tools import build_registry


class StubTokens:
    def __init__(self, token="test-token"):
        self._token = token
        self.calls = 0

    def token(self):
        self.calls += 1
        return self._token


class FakeAds:
    """Stands in for AdsSearchClient; records every search."""

    def __init__(self, response=None, error=None):
        self.response = {"results": []} if response is None else response
        self.error = error
        self.calls = []

    def search(self, query, page_size):
        self.calls.append((query, page_size))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def settings():
    return AdsSettings(developer_token="dev-tok", customer_id="1234567890")


@pytest.fixture
def tokens():
    return StubTokens()


@pytest.fixture
def fake_ads():
    return FakeAds()


@pytest.fixture
def registry(fake_ads):
    return build_registry(fake_ads)


@pytest.fixture
def adapter(registry):
    return RpcAdapter(registry)

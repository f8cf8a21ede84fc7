"""
Shared fixtures: temporary cache tiers, a controllable clock, mock HTTP
sessions returning real requests.Response objects, and a loguru capture sink.
"""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests
from loguru import logger

from config.settings import Settings
from market_data.cache import CacheService, PersistenceService

FIXTURES_DIR = Path(__file__).parent / "fixtures"

_ENV_FIELDS = list(Settings.model_fields)


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def build_response(payload=None, status: int = 200, headers=None, text: str | None = None,
                   url: str = "https://api.example.test/endpoint") -> requests.Response:
    """Real Response object carrying a JSON (or raw text) body."""
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.encoding = "utf-8"
    if text is not None:
        response._content = text.encode("utf-8")
    elif payload is None:
        response._content = b""
    else:
        response._content = json.dumps(payload).encode("utf-8")
    response.headers.update(headers or {})
    return response


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def load_payload():
    """Load a JSON payload from tests/fixtures."""
    def loader(name: str):
        return json.loads((FIXTURES_DIR / name).read_text(encoding="utf-8"))
    return loader


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def persistence(tmp_path):
    return PersistenceService(tmp_path / "cache")


@pytest.fixture
def cache(persistence, clock):
    """Cache with synchronous disk writes so tests can inspect files directly."""
    service = CacheService(persistence, clock=clock, write_behind=False)
    yield service
    service.close()


@pytest.fixture
def make_settings(monkeypatch):
    """Settings isolated from the process environment and any .env file."""
    for name in _ENV_FIELDS:
        monkeypatch.delenv(name, raising=False)

    def factory(**overrides) -> Settings:
        overrides.setdefault("HTTP_MAX_RETRIES", 0)
        return Settings(_env_file=None, **overrides)
    return factory


@pytest.fixture
def session():
    """Mock requests.Session; set ``session.request.return_value`` per test."""
    return MagicMock(spec=requests.Session)


@pytest.fixture
def make_adapter(cache, session, make_settings):
    """Build any adapter class against the shared test cache and mock session."""
    def factory(cls, api_key=None, **settings_overrides):
        return cls(cache, api_key=api_key, settings=make_settings(**settings_overrides), session=session)
    return factory


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)

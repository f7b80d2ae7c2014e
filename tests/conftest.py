"""
Shared fixtures.

- engine / db: in-memory SQLite (StaticPool) with SAVEPOINT support and the
  full schema
- fake_clock: deterministic time()/sleep() for the limiter and gateway
- FakeHttp: stands in for requests.Session with scripted responses per action
- make_gateway: ProviderGateway wired to the above, with a stored token
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.Core.config import settings
from src.DB.base import Base
from src.DB.session import enable_sqlite_savepoints
from src.Models.device import Device
from src.Repositories.app_setting import upsert_setting
from src.Schemas.position import PositionSample
from src.Services.provider.gateway import ProviderGateway
from src.Services.provider.token_manager import TOKEN_KEY
from src.Services.timestamps import utc_now


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(eng)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def devices(db):
    """Two active vehicles and one inactive one."""
    db.add_all([
        Device(device_id="DEV-1", device_name="Truck One", is_active=True),
        Device(device_id="DEV-2", device_name="Van Two", is_active=True),
        Device(device_id="DEV-OLD", device_name="Retired", is_active=False),
    ])
    db.commit()
    return ["DEV-1", "DEV-2"]


# =============================================================================
# TIME
# =============================================================================

class FakeClock:
    """Epoch-seconds clock whose sleep() only advances time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(seconds, 0.0)

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


def at(minutes: float = 0, base: datetime = datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)) -> datetime:
    return base + timedelta(minutes=minutes)


def sample(minutes: float, lat: float, lon: float, speed: float = 0.0, **extra) -> PositionSample:
    return PositionSample(
        device_id=extra.pop("device_id", "DEV-1"),
        latitude=lat,
        longitude=lon,
        speed=speed,
        gps_time=extra.pop("gps_time", at(minutes)),
        **extra,
    )


# =============================================================================
# PROVIDER HTTP DOUBLE
# =============================================================================

class FakeResponse:

    def __init__(self, payload: Any = None, status_code: int = 200, invalid_json: bool = False):
        self.payload = payload if payload is not None else {"status": 0}
        self.status_code = status_code
        self.invalid_json = invalid_json

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeHttp:
    """
    Scripted stand-in for requests.Session.

    Responses are queued per action and consumed in order; the last one
    repeats. Items may be dicts (JSON body), FakeResponse or exceptions.
    Unscripted actions answer {"status": 0}.
    """

    def __init__(self):
        self.scripts: Dict[str, List[Any]] = {}
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def script(self, action: str, *responses: Any) -> "FakeHttp":
        self.scripts.setdefault(action, []).extend(responses)
        return self

    def actions(self) -> List[str]:
        return [call["action"] for call in self.calls]

    def post(self, url, params=None, json=None, timeout=None):
        query = dict(params or {})
        body = json
        if not query and isinstance(json, dict) and "targetUrl" in json:
            query = {k: v[0] for k, v in parse_qs(urlparse(json["targetUrl"]).query).items()}
            body = json.get("data")

        action = query.get("action")
        self.calls.append({"url": url, "action": action, "query": query, "body": body,
                           "raw": json, "timeout": timeout})

        queue = self.scripts.get(action) or [{"status": 0}]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, FakeResponse):
            return item
        return FakeResponse(item)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_http():
    return FakeHttp()


def seed_token(db, token: str = "tok-1", expires_in: timedelta = timedelta(hours=1), serverid: str = "3"):
    upsert_setting(
        db,
        TOKEN_KEY,
        value=token,
        expires_at=utc_now() + expires_in,
        metadata={"serverid": serverid, "username": "fleet"},
    )
    db.commit()


@pytest.fixture
def make_gateway(db, fake_clock, fake_http):
    """
    Build a gateway over the fake HTTP client.

    Keyword overrides are applied to a copy of the settings, e.g.
    make_gateway(PROVIDER_USERNAME="fleet", PROVIDER_PASSWORD="secret").
    """

    def _make(with_token: bool = True, http=None, **overrides) -> ProviderGateway:
        config = settings.model_copy(update={
            "PROVIDER_USERNAME": None,
            "PROVIDER_PASSWORD": None,
            "PROVIDER_PROXY_URL": None,
            **overrides,
        })
        if with_token:
            seed_token(db)
        return ProviderGateway(
            db,
            config=config,
            http_client=http or fake_http,
            sleep=fake_clock.sleep,
            clock=fake_clock.time,
        )

    return _make

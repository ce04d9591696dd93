import os

# must be set before oddsvault.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CACHE_BACKEND", "memory")

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from oddsvault.cache import InMemoryCache, InstrumentedCache
from oddsvault.db import Base
from oddsvault.mapper import CreateOddsInput, UpdateOddsInput
from oddsvault.models import Creator, Role
from oddsvault.service import OddsCacheService
from oddsvault.store import OddsStore

T0 = datetime(2026, 3, 1, 12, 0, 0)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class QueryRecorder:
    """Collects every SQL statement sent through the engine."""

    def __init__(self, engine):
        self.statements = []
        event.listen(engine, "before_cursor_execute", self._record)

    def _record(self, conn, cursor, statement, parameters, context, executemany):
        self.statements.append(statement)

    @property
    def selects(self) -> int:
        return sum(1 for s in self.statements if s.lstrip().upper().startswith("SELECT"))

    def reset(self):
        self.statements.clear()


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def queries(engine):
    return QueryRecorder(engine)


@pytest.fixture
def session(engine):
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    db = Session()
    yield db
    db.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache():
    return InMemoryCache()


@pytest.fixture
def cache(memory_cache):
    return InstrumentedCache(memory_cache)


@pytest.fixture
def store(session):
    return OddsStore(session)


@pytest.fixture
def service(store, cache, clock):
    return OddsCacheService(store, cache, ttl_seconds=60, clock=clock)


def make_create_input(**overrides) -> CreateOddsInput:
    values = dict(
        sport="Football",
        home_team="Arsenal",
        away_team="Chelsea",
        home_odds=Decimal("2.10"),
        draw_odds=Decimal("3.40"),
        away_odds=Decimal("3.60"),
        match_date=T0 + timedelta(days=7),
        created_by_id=None,
    )
    values.update(overrides)
    return CreateOddsInput(**values)


def make_update_input(**overrides) -> UpdateOddsInput:
    values = dict(
        sport="Football",
        home_team="Arsenal",
        away_team="Chelsea",
        home_odds=Decimal("2.20"),
        draw_odds=Decimal("3.30"),
        away_odds=Decimal("3.50"),
        match_date=T0 + timedelta(days=7),
        active=None,
    )
    values.update(overrides)
    return UpdateOddsInput(**values)


@pytest.fixture
def make_creator(session):
    counter = {"n": 0}

    def _make(role: Role = Role.BOOKMAKER) -> Creator:
        counter["n"] += 1
        n = counter["n"]
        creator = Creator(
            username=f"bookie{n}", email=f"bookie{n}@example.com", role=role,
            active=True, created_at=T0, updated_at=T0,
        )
        session.add(creator)
        session.commit()
        return creator

    return _make

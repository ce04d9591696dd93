"""
Read-through / write-invalidate service for betting odds.

Single records go through the cache: a read fills it on miss, ``update``
replaces the entry with the committed value, ``deactivate`` and ``delete``
evict it so the next read goes back to the store. Collections are never
cached; they go through ``BatchLoader``.

Cache failures are logged and swallowed. Store failures propagate.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from decimal import InvalidOperation
from typing import Callable

import structlog

from . import mapper
from .batch_loader import BatchLoader
from .cache import Cache, odds_key
from .config import (
    CACHE_KEY_PREFIX, CACHE_TTL_SECONDS, MARGIN_ALERT_MAX, MARGIN_ALERT_MIN, ODDS_CHANGE_ALERT,
)
from .errors import CacheError, OddsNotFoundError
from .logging_config import audit_log, performance_log, security_log
from .mapper import CreateOddsInput, OddsView, UpdateOddsInput
from .models import OddsRecord
from .store import OddsFilter, OddsStore
from .validation import validate_create, validate_update

logger = structlog.get_logger(__name__)

# snapshot encode/decode problems are treated like cache transport failures
_CACHE_FAILURES = (CacheError, ValueError, KeyError, TypeError, InvalidOperation)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class OddsCacheService:
    def __init__(
        self,
        store: OddsStore,
        cache: Cache,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        key_prefix: str = CACHE_KEY_PREFIX,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self.clock = clock
        self.batch_loader = BatchLoader(store)

    # --- cache helpers, never raise -----------------------------------------

    def _key(self, odds_id: int) -> str:
        return odds_key(odds_id, self.key_prefix)

    def _cache_read(self, odds_id: int) -> OddsRecord | None:
        key = self._key(odds_id)
        try:
            lookup = self.cache.get(key)
            if not lookup.hit:
                return None
            return mapper.from_snapshot(lookup.value)
        except _CACHE_FAILURES as exc:
            logger.warning("cache_read_failed", key=key, error=str(exc))
            return None

    def _cache_write(self, record: OddsRecord) -> None:
        key = self._key(record.id)
        try:
            self.cache.set(key, mapper.to_snapshot(record), self.ttl_seconds)
        except _CACHE_FAILURES as exc:
            logger.warning("cache_write_failed", key=key, error=str(exc))

    def _cache_evict(self, odds_id: int) -> None:
        key = self._key(odds_id)
        try:
            self.cache.delete(key)
        except _CACHE_FAILURES as exc:
            logger.warning("cache_evict_failed", key=key, error=str(exc))

    def _touch(self, record: OddsRecord) -> datetime:
        # updated_at never goes backwards, even if the clock does
        now = self.clock()
        if record.updated_at is not None and record.updated_at > now:
            return record.updated_at
        return now

    def _load(self, odds_id: int, operation: str) -> OddsRecord:
        record = self.store.find_by_id(odds_id)
        if record is None:
            logger.warning("odds_not_found", odds_id=odds_id, operation=operation)
            raise OddsNotFoundError(odds_id)
        return record

    def _read_through(self, odds_id: int) -> OddsRecord:
        record = self._cache_read(odds_id)
        if record is not None:
            return record
        record = self._load(odds_id, "get_by_id")
        self._cache_write(record)
        return record

    # --- reads --------------------------------------------------------------

    def get_by_id(self, odds_id: int) -> OddsView:
        return mapper.to_view(self._read_through(odds_id))

    def get_with_margin(self, odds_id: int) -> OddsView:
        start = time.perf_counter()
        record = self._read_through(odds_id)
        view = mapper.to_view_with_margin(record)
        if not (MARGIN_ALERT_MIN <= view.bookmaker_margin <= MARGIN_ALERT_MAX):
            security_log.warning(
                "anomalous_margin", odds_id=odds_id, margin=round(view.bookmaker_margin, 4),
                home_team=record.home_team, away_team=record.away_team,
            )
        performance_log.debug(
            "margin_calculation", odds_id=odds_id,
            duration_ms=round((time.perf_counter() - start) * 1000, 3),
        )
        return view

    def list_with_creators(self, flt: OddsFilter | None = None) -> list[OddsView]:
        return [mapper.to_view_with_creator(r) for r in self.batch_loader.load_with_creators(flt)]

    # --- writes -------------------------------------------------------------

    def create(self, data: CreateOddsInput) -> OddsView:
        now = self.clock()
        validate_create(data, now)
        record = mapper.to_persisted(data)
        record.active = True
        record.created_at = now
        record.updated_at = now
        self.store.insert(record)
        logger.info("odds_created", odds_id=record.id, home_team=record.home_team, away_team=record.away_team)
        audit_log.info(
            "odds_created", odds_id=record.id, sport=record.sport,
            home_team=record.home_team, away_team=record.away_team,
        )
        return mapper.to_view(record)

    def update(self, odds_id: int, data: UpdateOddsInput) -> OddsView:
        validate_update(data)
        record = self._load(odds_id, "update")
        self._check_odds_change(record, data)
        changes = mapper.describe_changes(record, data)
        mapper.apply_update(record, data)
        record.updated_at = self._touch(record)
        self.store.save(record)
        # write-through: the next reader gets the new value without a store round trip
        self._cache_write(record)
        logger.info("odds_updated", odds_id=odds_id)
        audit_log.info(
            "odds_updated", odds_id=odds_id, home_team=record.home_team,
            away_team=record.away_team, changes=changes,
        )
        return mapper.to_view(record)

    def deactivate(self, odds_id: int) -> OddsView:
        record = self._load(odds_id, "deactivate")
        self.store.deactivate(record, self._touch(record))
        # evict, never refresh: the next read must come from the store
        self._cache_evict(odds_id)
        logger.info("odds_deactivated", odds_id=odds_id)
        audit_log.info("odds_deactivated", odds_id=odds_id, home_team=record.home_team, away_team=record.away_team)
        return mapper.to_view(record)

    def delete(self, odds_id: int) -> None:
        record = self.store.find_by_id(odds_id)
        removed = False
        if record is not None:
            home_team, away_team = record.home_team, record.away_team
            # False when a concurrent delete got there first
            removed = self.store.delete(odds_id)
        # evict in every case, a stale entry may outlive the row
        self._cache_evict(odds_id)
        if not removed:
            logger.warning("odds_not_found", odds_id=odds_id, operation="delete")
            raise OddsNotFoundError(odds_id)
        logger.info("odds_deleted", odds_id=odds_id)
        audit_log.info("odds_deleted", odds_id=odds_id, home_team=home_team, away_team=away_team)

    def _check_odds_change(self, record: OddsRecord, data: UpdateOddsInput) -> None:
        old = float(record.home_odds)
        change = abs(float(data.home_odds) - old) / old
        if change > ODDS_CHANGE_ALERT:
            security_log.warning(
                "suspicious_odds_change", odds_id=record.id,
                old=str(record.home_odds), new=str(data.home_odds), change=round(change, 4),
            )

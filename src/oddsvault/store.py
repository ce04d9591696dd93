from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import select, delete, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .errors import StoreError
from .models import OddsRecord, Creator

logger = structlog.get_logger(__name__)


@dataclass
class OddsFilter:
    sport: Optional[str] = None
    active: Optional[bool] = True         # None -> active and inactive
    date_from: Optional[datetime] = None  # inclusive
    date_to: Optional[datetime] = None    # inclusive
    team: Optional[str] = None            # home or away
    limit: Optional[int] = None


class OddsStore:
    """Repository over one session. Every write is committed on its own."""

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, operation: str, exc: SQLAlchemyError):
        self.db.rollback()
        logger.error("store_failure", operation=operation, error=str(exc))
        raise StoreError(f"{operation} failed: {exc.__class__.__name__}") from exc

    def find_by_id(self, odds_id: int) -> Optional[OddsRecord]:
        # select() always hits the database, even when the row is in the identity map
        try:
            return self.db.execute(
                select(OddsRecord).where(OddsRecord.id == odds_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self._fail("find_by_id", exc)

    def insert(self, record: OddsRecord) -> OddsRecord:
        try:
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail("insert", exc)
        return record

    def save(self, record: OddsRecord) -> OddsRecord:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail("save", exc)
        return record

    def deactivate(self, record: OddsRecord, now: datetime) -> OddsRecord:
        """Flushes an UPDATE of the active flag and updated_at only."""
        record.active = False
        record.updated_at = now
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail("deactivate", exc)
        return record

    def delete(self, odds_id: int) -> bool:
        try:
            result = self.db.execute(delete(OddsRecord).where(OddsRecord.id == odds_id))
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail("delete", exc)
        return result.rowcount > 0

    def _filtered(self, flt: OddsFilter):
        q = select(OddsRecord)
        if flt.sport:
            q = q.where(OddsRecord.sport == flt.sport)
        if flt.active is not None:
            q = q.where(OddsRecord.active == flt.active)
        if flt.date_from is not None:
            q = q.where(OddsRecord.match_date >= flt.date_from)
        if flt.date_to is not None:
            q = q.where(OddsRecord.match_date <= flt.date_to)
        if flt.team:
            q = q.where(or_(OddsRecord.home_team == flt.team, OddsRecord.away_team == flt.team))
        q = q.order_by(OddsRecord.match_date, OddsRecord.id)
        if flt.limit:
            q = q.limit(flt.limit)
        return q

    def find(self, flt: OddsFilter) -> list[OddsRecord]:
        """Plain scan; created_by stays unresolved."""
        try:
            return list(self.db.execute(self._filtered(flt)).scalars())
        except SQLAlchemyError as exc:
            self._fail("find", exc)

    def find_with_creators(self, flt: OddsFilter) -> list[OddsRecord]:
        """Same filter, creator fetched in the same statement (LEFT OUTER JOIN users)."""
        q = self._filtered(flt).options(joinedload(OddsRecord.created_by))
        try:
            return list(self.db.execute(q).scalars())
        except SQLAlchemyError as exc:
            self._fail("find_with_creators", exc)

    def find_creator(self, creator_id: int) -> Optional[Creator]:
        try:
            return self.db.execute(select(Creator).where(Creator.id == creator_id)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self._fail("find_creator", exc)

    def add_creator(self, creator: Creator) -> Creator:
        try:
            self.db.add(creator)
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail("add_creator", exc)
        return creator

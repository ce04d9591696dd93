"""
Conversion between persisted odds records and the shapes the outside world sees.

Everything here is pure: no session, no cache, no clock.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .models import OddsRecord, Creator


@dataclass
class CreateOddsInput:
    sport: str
    home_team: str
    away_team: str
    home_odds: Decimal
    draw_odds: Decimal
    away_odds: Decimal
    match_date: datetime
    created_by_id: Optional[int] = None


@dataclass
class UpdateOddsInput:
    sport: str
    home_team: str
    away_team: str
    home_odds: Decimal
    draw_odds: Decimal
    away_odds: Decimal
    match_date: datetime
    active: Optional[bool] = None       # None -> leave untouched


@dataclass
class CreatorView:
    id: int
    username: str
    role: str


@dataclass
class OddsView:
    id: int
    sport: str
    home_team: str
    away_team: str
    home_odds: Decimal
    draw_odds: Decimal
    away_odds: Decimal
    match_date: datetime
    active: bool
    created_by_id: Optional[int]
    created_at: datetime
    updated_at: datetime
    implied_probability_home: Optional[float] = None
    implied_probability_draw: Optional[float] = None
    implied_probability_away: Optional[float] = None
    bookmaker_margin: Optional[float] = None
    created_by: Optional[CreatorView] = field(default=None)


_MUTABLE_FIELDS = ("sport", "home_team", "away_team", "home_odds", "draw_odds", "away_odds", "match_date")


def to_persisted(data: CreateOddsInput) -> OddsRecord:
    # id and timestamps are assigned on insert
    return OddsRecord(
        sport=data.sport,
        home_team=data.home_team,
        away_team=data.away_team,
        home_odds=data.home_odds,
        draw_odds=data.draw_odds,
        away_odds=data.away_odds,
        match_date=data.match_date,
        created_by_id=data.created_by_id,
        active=True,
    )


def apply_update(record: OddsRecord, data: UpdateOddsInput) -> OddsRecord:
    for name in _MUTABLE_FIELDS:
        setattr(record, name, getattr(data, name))
    if data.active is not None:
        record.active = data.active
    return record


def to_view(record: OddsRecord) -> OddsView:
    return OddsView(
        id=record.id,
        sport=record.sport,
        home_team=record.home_team,
        away_team=record.away_team,
        home_odds=record.home_odds,
        draw_odds=record.draw_odds,
        away_odds=record.away_odds,
        match_date=record.match_date,
        active=record.active,
        created_by_id=record.created_by_id,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def implied_probability(odds) -> float:
    return 1.0 / float(odds)


def bookmaker_margin(home_odds, draw_odds, away_odds) -> float:
    """Overround in percent: (1/h + 1/d + 1/a - 1) * 100"""
    total = implied_probability(home_odds) + implied_probability(draw_odds) + implied_probability(away_odds)
    return (total - 1.0) * 100


def to_view_with_margin(record: OddsRecord) -> OddsView:
    view = to_view(record)
    view.implied_probability_home = implied_probability(record.home_odds)
    view.implied_probability_draw = implied_probability(record.draw_odds)
    view.implied_probability_away = implied_probability(record.away_odds)
    view.bookmaker_margin = bookmaker_margin(record.home_odds, record.draw_odds, record.away_odds)
    return view


def to_creator_view(creator: Creator) -> CreatorView:
    role = creator.role.value if hasattr(creator.role, "value") else str(creator.role)
    return CreatorView(id=creator.id, username=creator.username, role=role)


def to_view_with_creator(record: OddsRecord) -> OddsView:
    """Only for records loaded by BatchLoader; created_by must already be joined."""
    view = to_view(record)
    if record.created_by is not None:
        view.created_by = to_creator_view(record.created_by)
    return view


def describe_changes(record: OddsRecord, data: UpdateOddsInput) -> str:
    changes = []
    for label, name in (("homeOdds", "home_odds"), ("drawOdds", "draw_odds"), ("awayOdds", "away_odds")):
        old, new = getattr(record, name), getattr(data, name)
        if Decimal(str(old)) != Decimal(str(new)):
            changes.append(f"{label}:{old}->{new}")
    if data.active is not None and data.active != record.active:
        changes.append(f"active:{record.active}->{data.active}")
    return " ".join(changes)


# --- cache snapshots ---------------------------------------------------------

def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value is not None else None


def to_snapshot(record: OddsRecord) -> str:
    return json.dumps({
        "id": record.id,
        "sport": record.sport,
        "home_team": record.home_team,
        "away_team": record.away_team,
        "home_odds": str(record.home_odds),
        "draw_odds": str(record.draw_odds),
        "away_odds": str(record.away_odds),
        "match_date": _dt(record.match_date),
        "active": record.active,
        "created_by_id": record.created_by_id,
        "created_at": _dt(record.created_at),
        "updated_at": _dt(record.updated_at),
    })


def from_snapshot(raw: str) -> OddsRecord:
    """Rebuild a transient record from a cache entry. Raises ValueError/KeyError on bad input."""
    data = json.loads(raw)
    return OddsRecord(
        id=int(data["id"]),
        sport=data["sport"],
        home_team=data["home_team"],
        away_team=data["away_team"],
        home_odds=Decimal(data["home_odds"]),
        draw_odds=Decimal(data["draw_odds"]),
        away_odds=Decimal(data["away_odds"]),
        match_date=_parse_dt(data["match_date"]),
        active=bool(data["active"]),
        created_by_id=data["created_by_id"],
        created_at=_parse_dt(data["created_at"]),
        updated_at=_parse_dt(data["updated_at"]),
    )

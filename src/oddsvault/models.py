import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Numeric, Boolean, Enum, Index
)
from sqlalchemy.orm import relationship
from .db import Base


class Role(str, enum.Enum):
    REGULAR = "regular"            # read only
    BOOKMAKER = "bookmaker"        # create / update / deactivate
    ADMINISTRATOR = "administrator"


class Creator(Base):
    """User account that created an odds record. Owned by user management."""
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    role = Column(Enum(Role, name="user_role", values_callable=lambda e: [r.value for r in e]),
                  nullable=False, default=Role.REGULAR)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class OddsRecord(Base):
    __tablename__ = "betting_odds"
    id = Column(Integer, primary_key=True)
    sport = Column(String, nullable=False)
    home_team = Column(String, nullable=False)
    away_team = Column(String, nullable=False)
    match_date = Column(DateTime, nullable=False)
    home_odds = Column(Numeric(5, 2), nullable=False)
    draw_odds = Column(Numeric(5, 2), nullable=False)
    away_odds = Column(Numeric(5, 2), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_by_id = Column("created_by_user_id", Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    # only ever populated by the eager join in BatchLoader
    created_by = relationship("Creator", lazy="raise")

    __table_args__ = (
        Index("idx_sport_active", "sport", "active"),
        Index("idx_match_date", "match_date"),
        Index("idx_home_team", "home_team"),
        Index("idx_away_team", "away_team"),
        Index("idx_active_match_date", "active", "match_date"),
    )

    def __repr__(self):
        return f"<OddsRecord id={self.id} {self.home_team} vs {self.away_team} active={self.active}>"

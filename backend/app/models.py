"""
models.py - SQLAlchemy ORM models for the Transfermarkt catalog.

Implements a Hybrid Schema approach:
- Fixed columns for catalog identity (site ids, names, links, counts)
- JSON columns for nested documents (club rosters, player stat seasons)

Every table is keyed by the site's natural id, so re-scraping the same
entity always upserts onto the same row.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base


class Country(Base):
    """Country with its ordered competitions."""
    __tablename__ = "countries"

    transfermarkt_id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    flag = Column(String(512), nullable=True)
    # Set only for countries read from the country selector
    discovered = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    competitions = relationship(
        "Competition",
        back_populates="country",
        order_by="Competition.position",
    )

    def __repr__(self):
        return f"<Country(transfermarkt_id='{self.transfermarkt_id}', name='{self.name}')>"


class Competition(Base):
    """
    Competition row.

    `position` keeps the owning country's list order. Nullable enrichment
    columns stay NULL until a reconciliation search fills them.
    """
    __tablename__ = "competitions"

    transfermarkt_id = Column(String(64), primary_key=True)
    country_id = Column(String(64), ForeignKey("countries.transfermarkt_id"), nullable=True, index=True)
    position = Column(Integer, nullable=False, default=0)

    name = Column(String(255), nullable=True, index=True)
    link = Column(String(512), nullable=True)
    logo = Column(String(512), nullable=True)
    cup = Column(String(50), nullable=True)  # Cup enum value
    tier = Column(String(50), nullable=True)  # Tier enum value
    clubs_count = Column(Integer, nullable=True)
    players_count = Column(Integer, nullable=True)
    market_value = Column(Float, nullable=True)
    market_value_average = Column(Float, nullable=True)
    club_ids = Column(JSON(none_as_null=True), nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    country = relationship("Country", back_populates="competitions")

    def __repr__(self):
        return f"<Competition(transfermarkt_id='{self.transfermarkt_id}', name='{self.name}')>"


class Club(Base):
    """Club row; `players` holds the scraped roster document (NULL = not scraped yet)."""
    __tablename__ = "clubs"

    transfermarkt_id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    link = Column(String(512), nullable=False)
    crest = Column(String(512), nullable=True)
    competition_ids = Column(JSON, nullable=False, default=list)
    players_count = Column(Integer, nullable=True)
    age_average = Column(Float, nullable=True)
    foreigners_count = Column(Integer, nullable=True)
    market_value = Column(Float, nullable=True)
    market_value_average = Column(Float, nullable=True)
    players = Column(JSON(none_as_null=True), nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Club(transfermarkt_id='{self.transfermarkt_id}', name='{self.name}')>"


class PlayerStat(Base):
    """
    Player stat document.

    The `seasons` JSON field stores the ordered season list with nested
    competition and match lines, written as one composite document.
    """
    __tablename__ = "player_stats"

    transfermarkt_id = Column(String(64), primary_key=True)
    player_transfermarkt_id = Column(String(64), nullable=False, unique=True, index=True)
    seasons = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<PlayerStat(player_transfermarkt_id='{self.player_transfermarkt_id}')>"

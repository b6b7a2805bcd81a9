from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Asteroid(Base):
    """Catalog row for one near-Earth object, replaced wholesale on every fetch."""

    __tablename__ = "asteroids"
    id = Column(Integer, primary_key=True, index=True)
    neo_id = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    nasa_jpl_url = Column(String, nullable=True)
    absolute_magnitude = Column(Float, nullable=True)
    diameter_min_km = Column(Float, nullable=True)
    diameter_max_km = Column(Float, nullable=True)
    is_potentially_hazardous = Column(Boolean, default=False, nullable=False)
    # list of {close_approach_date, miss_distance_km, relative_velocity_km_s, orbiting_body}
    close_approach_data = Column(JSON, nullable=True)
    orbital_data = Column(JSON, nullable=True)
    risk_score = Column(Integer, nullable=False, default=0)
    risk_level = Column(String, nullable=False, default="LOW")
    last_fetched_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_asteroid_risk_score", "risk_score"),
        Index("idx_asteroid_risk_level", "risk_level"),
    )

    def __repr__(self) -> str:
        return f"<Asteroid {self.neo_id} {self.name} {self.risk_level}>"


class WatchedAsteroid(Base):
    __tablename__ = "watched_asteroids"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    neo_id = Column(String, ForeignKey("asteroids.neo_id", ondelete="CASCADE"), nullable=False)
    alert_enabled = Column(Boolean, default=True, nullable=False)
    min_distance_threshold_km = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    asteroid = relationship("Asteroid", lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "neo_id", name="uq_watched_user_neo"),
    )

    def __repr__(self) -> str:
        return f"<WatchedAsteroid {self.user_id} {self.neo_id}>"


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    neo_id = Column(String, nullable=True)
    notification_type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=True)
    # copy of metadata["event_id"]; NULL for custom notifications
    event_key = Column(String, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "event_key", name="uq_notification_user_event"),
        Index("idx_notification_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification {self.user_id} {self.notification_type}>"

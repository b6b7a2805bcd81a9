from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class NotificationType(str, Enum):
    CLOSE_APPROACH = "close_approach"
    THRESHOLD_BREACH = "threshold_breach"
    NEW_HAZARDOUS = "new_hazardous"
    CUSTOM = "custom"


class RiskAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int
    level: RiskLevel


class CloseApproach(BaseModel):
    # None marks a value the feed sent but that could not be parsed
    close_approach_date: date | None = None
    miss_distance_km: float | None = None
    relative_velocity_km_s: float | None = None
    orbiting_body: str | None = None


class NearEarthObject(BaseModel):
    neo_id: str
    name: str
    nasa_jpl_url: str | None = None
    absolute_magnitude: float | None = None
    diameter_min_km: float = 0.0
    diameter_max_km: float = 0.0
    is_potentially_hazardous: bool = False
    close_approach_data: list[CloseApproach] = []
    orbital_data: dict[str, Any] | None = None


class AsteroidRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    neo_id: str
    name: str
    nasa_jpl_url: str | None = None
    absolute_magnitude: float | None = None
    diameter_min_km: float | None = None
    diameter_max_km: float | None = None
    is_potentially_hazardous: bool
    close_approach_data: list[CloseApproach] | None = None
    orbital_data: dict[str, Any] | None = None
    risk_score: int
    risk_level: RiskLevel
    last_fetched_at: datetime | None = None


class AsteroidStats(BaseModel):
    total: int
    hazardous: int
    critical: int
    high: int


class WatchCreate(BaseModel):
    neo_id: str
    notes: str | None = None
    min_distance_threshold_km: float | None = Field(default=None, gt=0)
    alert_enabled: bool = True


class WatchUpdate(BaseModel):
    notes: str | None = None
    min_distance_threshold_km: float | None = Field(default=None, gt=0)
    alert_enabled: bool | None = None


class WatchRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    neo_id: str
    alert_enabled: bool
    min_distance_threshold_km: float | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
    asteroid: AsteroidRead | None = None


class NotificationCreate(BaseModel):
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    neo_id: str | None = None
    metadata: dict[str, Any] | None = None


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    neo_id: str | None = None
    notification_type: NotificationType
    title: str
    message: str
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    is_read: bool
    created_at: datetime


class NotificationList(BaseModel):
    generated: int
    notifications: list[NotificationRead]


class UnreadCount(BaseModel):
    count: int

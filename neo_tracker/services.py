import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

import httpx
from prometheus_client import Counter
from sqlalchemy import func
from sqlalchemy.orm import Session

from . import config, models
from .risk import assess_risk, to_float
from .schemas import CloseApproach, NearEarthObject, RiskLevel

logger = logging.getLogger(__name__)

FEED_INGESTS = Counter(
    "feed_ingest_total",
    "Catalog refreshes from the NEO feed",
    ["status"],
)


class FeedError(Exception):
    """The NEO feed could not be reached or answered with an error."""


def _parse_date(value) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def parse_neo(item: dict) -> NearEarthObject:
    """Turn one raw feed record into a validated :class:`NearEarthObject`."""

    diameter = (item.get("estimated_diameter") or {}).get("kilometers") or {}
    approaches = []
    for raw in item.get("close_approach_data") or []:
        approaches.append(
            CloseApproach(
                close_approach_date=_parse_date(raw.get("close_approach_date")),
                miss_distance_km=to_float((raw.get("miss_distance") or {}).get("kilometers")),
                relative_velocity_km_s=to_float(
                    (raw.get("relative_velocity") or {}).get("kilometers_per_second")
                ),
                orbiting_body=raw.get("orbiting_body"),
            )
        )

    return NearEarthObject(
        neo_id=str(item["id"]),
        name=item.get("name") or str(item["id"]),
        nasa_jpl_url=item.get("nasa_jpl_url"),
        absolute_magnitude=to_float(item.get("absolute_magnitude_h")),
        diameter_min_km=to_float(diameter.get("estimated_diameter_min")) or 0.0,
        diameter_max_km=to_float(diameter.get("estimated_diameter_max")) or 0.0,
        is_potentially_hazardous=bool(item.get("is_potentially_hazardous_asteroid", False)),
        close_approach_data=approaches,
        orbital_data=item.get("orbital_data"),
    )


def _get(path: str, params: dict) -> httpx.Response:
    params = {**params, "api_key": config.NASA_API_KEY}
    try:
        return httpx.get(
            f"{config.NASA_NEO_BASE}{path}",
            params=params,
            timeout=config.FEED_TIMEOUT_SECONDS,
        )
    except httpx.HTTPError as exc:
        raise FeedError(f"NEO feed request failed: {exc}") from exc


def fetch_feed(start_date: date, end_date: date) -> List[NearEarthObject]:
    """Fetch every NEO with a close approach between the two dates."""

    resp = _get(
        "/feed",
        {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
    )
    if resp.status_code != 200:
        raise FeedError(f"NEO feed error: HTTP {resp.status_code}")
    data = resp.json()

    neos: List[NearEarthObject] = []
    for items in data.get("near_earth_objects", {}).values():
        for item in items:
            neos.append(parse_neo(item))
    return neos


def fetch_neo(neo_id: str) -> Optional[NearEarthObject]:
    resp = _get(f"/neo/{neo_id}", {})
    if resp.status_code == 404:
        return None
    if resp.status_code != 200:
        raise FeedError(f"NEO lookup error: HTTP {resp.status_code}")
    return parse_neo(resp.json())


def to_cache_record(neo: NearEarthObject, fetched_at: Optional[datetime] = None) -> dict:
    risk = assess_risk(neo)
    return {
        "neo_id": neo.neo_id,
        "name": neo.name,
        "nasa_jpl_url": neo.nasa_jpl_url,
        "absolute_magnitude": neo.absolute_magnitude,
        "diameter_min_km": neo.diameter_min_km,
        "diameter_max_km": neo.diameter_max_km,
        "is_potentially_hazardous": neo.is_potentially_hazardous,
        "close_approach_data": [
            a.model_dump(mode="json") for a in neo.close_approach_data
        ],
        "orbital_data": neo.orbital_data,
        "risk_score": risk.score,
        "risk_level": risk.level.value,
        "last_fetched_at": fetched_at or datetime.now(timezone.utc),
    }


def _merge_duplicates(neos: List[NearEarthObject]) -> List[NearEarthObject]:
    """One record per ``neo_id``; later copies win, close approaches are combined."""

    merged: Dict[str, NearEarthObject] = {}
    for neo in neos:
        previous = merged.get(neo.neo_id)
        if previous is not None:
            approaches = list(previous.close_approach_data)
            for approach in neo.close_approach_data:
                if approach not in approaches:
                    approaches.append(approach)
            neo = neo.model_copy(update={"close_approach_data": approaches})
        merged[neo.neo_id] = neo
    return list(merged.values())


def upsert_asteroids(db: Session, neos: List[NearEarthObject]) -> List[models.Asteroid]:
    """Insert or fully replace catalog rows keyed by ``neo_id``."""

    fetched_at = datetime.now(timezone.utc)
    stored: List[models.Asteroid] = []
    for neo in _merge_duplicates(neos):
        record = to_cache_record(neo, fetched_at)
        obj = db.query(models.Asteroid).filter_by(neo_id=neo.neo_id).first()
        if obj is None:
            obj = models.Asteroid(**record)
            db.add(obj)
        else:
            for key, value in record.items():
                setattr(obj, key, value)
        stored.append(obj)

    db.commit()
    for obj in stored:
        db.refresh(obj)
    return stored


def ingest_feed(db: Session, start_date: date, end_date: date) -> List[models.Asteroid]:
    try:
        neos = fetch_feed(start_date, end_date)
    except FeedError:
        FEED_INGESTS.labels(status="error").inc()
        raise
    stored = upsert_asteroids(db, neos)
    FEED_INGESTS.labels(status="ok").inc()
    logger.info(
        "Cached %d asteroids for %s..%s", len(stored), start_date, end_date
    )
    return stored


def get_asteroid(db: Session, neo_id: str) -> Optional[models.Asteroid]:
    """Cache first, then the feed; the feed result is cached."""

    cached = db.query(models.Asteroid).filter_by(neo_id=neo_id).first()
    if cached:
        return cached
    try:
        neo = fetch_neo(neo_id)
    except FeedError:
        logger.warning("Could not fetch asteroid %s from the feed", neo_id, exc_info=True)
        return None
    if neo is None:
        return None
    return upsert_asteroids(db, [neo])[0]


def search_asteroids(db: Session, query: str, limit: int = 20) -> List[models.Asteroid]:
    return (
        db.query(models.Asteroid)
        .filter(func.lower(models.Asteroid.name).contains(query.lower(), autoescape=True))
        .limit(limit)
        .all()
    )


def get_hazardous_asteroids(db: Session, limit: int = 50) -> List[models.Asteroid]:
    return (
        db.query(models.Asteroid)
        .filter(models.Asteroid.is_potentially_hazardous.is_(True))
        .order_by(models.Asteroid.risk_score.desc())
        .limit(limit)
        .all()
    )


def get_cached_asteroids(
    db: Session,
    limit: int = config.DEFAULT_PAGE_SIZE,
    offset: int = 0,
    hazardous_only: bool = False,
) -> List[models.Asteroid]:
    limit = max(1, min(limit, config.MAX_PAGE_SIZE))
    q = db.query(models.Asteroid)
    if hazardous_only:
        q = q.filter(models.Asteroid.is_potentially_hazardous.is_(True))
    return (
        q.order_by(models.Asteroid.risk_score.desc())
        .offset(max(0, offset))
        .limit(limit)
        .all()
    )


def get_high_risk_asteroids(db: Session) -> List[models.Asteroid]:
    return (
        db.query(models.Asteroid)
        .filter(models.Asteroid.risk_level.in_([RiskLevel.CRITICAL.value, RiskLevel.HIGH.value]))
        .order_by(models.Asteroid.risk_score.desc())
        .all()
    )


def get_asteroid_stats(db: Session) -> dict:
    q = db.query(models.Asteroid)
    return {
        "total": q.count(),
        "hazardous": q.filter(models.Asteroid.is_potentially_hazardous.is_(True)).count(),
        "critical": q.filter(models.Asteroid.risk_level == RiskLevel.CRITICAL.value).count(),
        "high": q.filter(models.Asteroid.risk_level == RiskLevel.HIGH.value).count(),
    }

"""Per-user notifications and the close-approach alert generator.

:func:`generate_notifications` is called right before a user's notification
list is read. It runs two passes over the cached catalog:

1. every asteroid on the user's watch list with a close approach in the next
   ``NOTIFICATION_WINDOW_DAYS`` days gets a ``close_approach`` alert, or a
   ``threshold_breach`` alert when the approach is inside the entry's own
   distance threshold;
2. every HIGH or CRITICAL asteroid in the catalog with a close approach in the
   same window gets a ``new_hazardous`` alert, highest score first.

Each alert carries an event key (``close-approach-<neo>-<date>`` or
``global-hazardous-<neo>-<date>``) that is unique per user, so an event is
announced at most once no matter how often the generator runs.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, NamedTuple, Optional

from prometheus_client import Counter
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import config, models, schemas, services, watchlist
from .events import broker
from .risk import to_float
from .schemas import NotificationType

logger = logging.getLogger(__name__)

NOTIFICATIONS_CREATED = Counter(
    "notifications_created_total",
    "Notifications written by the alert generator",
    ["notification_type"],
)


class Approach(NamedTuple):
    close_approach_date: date
    miss_distance_km: float


def close_approach_key(neo_id: str, approach_date: date) -> str:
    return f"close-approach-{neo_id}-{approach_date.isoformat()}"


def global_hazardous_key(neo_id: str, approach_date: date) -> str:
    return f"global-hazardous-{neo_id}-{approach_date.isoformat()}"


def format_km(distance_km: float) -> str:
    return f"{distance_km:,.0f}"


def upcoming_approach(
    approaches: Optional[Iterable[dict]], today: date, window_days: int
) -> Optional[Approach]:
    """Earliest usable approach dated within ``[today, today + window_days]``.

    Approaches with an unparseable date or miss distance are skipped. Ties on
    the date keep stored order.
    """
    end = today + timedelta(days=window_days)
    found: Optional[Approach] = None
    for raw in approaches or []:
        try:
            when = date.fromisoformat(str(raw.get("close_approach_date"))[:10])
        except ValueError:
            continue
        distance = to_float(raw.get("miss_distance_km"))
        if distance is None or not today <= when <= end:
            continue
        if found is None or when < found.close_approach_date:
            found = Approach(when, distance)
    return found


def find_by_event_key(db: Session, user_id: str, event_key: str) -> Optional[models.Notification]:
    return (
        db.query(models.Notification)
        .filter_by(user_id=user_id, event_key=event_key)
        .first()
    )


def _publish(obj: models.Notification) -> None:
    payload = schemas.NotificationRead.model_validate(obj).model_dump(mode="json")
    broker.publish(obj.user_id, payload)


def _insert(
    db: Session,
    user_id: str,
    neo_id: Optional[str],
    notification_type: NotificationType,
    title: str,
    message: str,
    metadata: Optional[dict],
) -> Optional[models.Notification]:
    """Insert one notification; ``None`` if its event key was already taken."""

    obj = models.Notification(
        user_id=user_id,
        neo_id=neo_id,
        notification_type=notification_type.value,
        title=title,
        message=message,
        metadata_=metadata,
        event_key=(metadata or {}).get("event_id"),
    )
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        # another request delivered the same event first
        db.rollback()
        logger.debug("Skipping duplicate event %s for user %s", obj.event_key, user_id)
        return None
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Could not store notification %s for user %s", obj.event_key, user_id, exc_info=True)
        return None
    db.refresh(obj)
    NOTIFICATIONS_CREATED.labels(notification_type=notification_type.value).inc()
    _publish(obj)
    return obj


def _watch_alerts(db: Session, user_id: str, today: date) -> int:
    created = 0
    for entry in watchlist.list_watched(db, user_id):
        asteroid = entry.asteroid
        if not entry.alert_enabled or asteroid is None or not asteroid.close_approach_data:
            continue
        approach = upcoming_approach(
            asteroid.close_approach_data, today, config.NOTIFICATION_WINDOW_DAYS
        )
        if approach is None:
            continue
        event_key = close_approach_key(asteroid.neo_id, approach.close_approach_date)
        if find_by_event_key(db, user_id, event_key):
            continue

        threshold = entry.min_distance_threshold_km
        breached = bool(threshold) and approach.miss_distance_km <= threshold
        metadata = {
            "event_id": event_key,
            "miss_distance_km": approach.miss_distance_km,
            "approach_date": approach.close_approach_date.isoformat(),
        }
        if breached:
            metadata["threshold_km"] = threshold
        obj = _insert(
            db,
            user_id,
            asteroid.neo_id,
            NotificationType.THRESHOLD_BREACH if breached else NotificationType.CLOSE_APPROACH,
            "CRITICAL Close Approach" if breached else "Upcoming Close Approach",
            f"{asteroid.name} will pass within {format_km(approach.miss_distance_km)} km "
            f"of Earth on {approach.close_approach_date.isoformat()}.",
            metadata,
        )
        if obj is not None:
            created += 1
    return created


def _global_alerts(db: Session, user_id: str, today: date) -> int:
    created = 0
    try:
        for asteroid in services.get_high_risk_asteroids(db):
            approach = upcoming_approach(
                asteroid.close_approach_data, today, config.NOTIFICATION_WINDOW_DAYS
            )
            if approach is None:
                continue
            event_key = global_hazardous_key(asteroid.neo_id, approach.close_approach_date)
            if find_by_event_key(db, user_id, event_key):
                continue
            obj = _insert(
                db,
                user_id,
                asteroid.neo_id,
                NotificationType.NEW_HAZARDOUS,
                "GLOBAL ALERT: High Risk Object Detected",
                f"Hazardous asteroid {asteroid.name} is approaching Earth! "
                f"Level: {asteroid.risk_level}. "
                f"Miss distance: {format_km(approach.miss_distance_km)} km.",
                {
                    "event_id": event_key,
                    "risk_level": asteroid.risk_level,
                    "miss_distance_km": approach.miss_distance_km,
                    "approach_date": approach.close_approach_date.isoformat(),
                },
            )
            if obj is not None:
                created += 1
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Global hazard pass aborted for user %s", user_id, exc_info=True)
    return created


def generate_notifications(
    db: Session, user_id: Optional[str], now: Optional[datetime] = None
) -> int:
    """Create any due alerts for ``user_id`` and return how many were created.

    Never raises on store failures: a failed watch-list pass returns 0, a
    failed global pass keeps what the watch-list pass created.
    """
    if not user_id:
        return 0
    today = (now or datetime.now(timezone.utc)).date()

    try:
        created = _watch_alerts(db, user_id, today)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Watch list alerts failed for user %s", user_id)
        return 0

    created += _global_alerts(db, user_id, today)
    if created:
        logger.info("Created %d notifications for user %s", created, user_id)
    return created


def list_notifications(db: Session, user_id: str, limit: int = 50) -> List[models.Notification]:
    return (
        db.query(models.Notification)
        .filter_by(user_id=user_id)
        .order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .limit(limit)
        .all()
    )


def unread_count(db: Session, user_id: str) -> int:
    return db.query(models.Notification).filter_by(user_id=user_id, is_read=False).count()


def mark_read(db: Session, user_id: str, notification_id: int) -> bool:
    obj = db.query(models.Notification).filter_by(id=notification_id, user_id=user_id).first()
    if obj is None:
        return False
    obj.is_read = True
    db.commit()
    return True


def mark_all_read(db: Session, user_id: str) -> int:
    updated = (
        db.query(models.Notification)
        .filter_by(user_id=user_id, is_read=False)
        .update({models.Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def delete_notification(db: Session, user_id: str, notification_id: int) -> bool:
    obj = db.query(models.Notification).filter_by(id=notification_id, user_id=user_id).first()
    if obj is None:
        return False
    db.delete(obj)
    db.commit()
    return True


def create_custom_notification(
    db: Session, user_id: str, data: schemas.NotificationCreate
) -> models.Notification:
    obj = models.Notification(
        user_id=user_id,
        neo_id=data.neo_id,
        notification_type=NotificationType.CUSTOM.value,
        title=data.title,
        message=data.message,
        metadata_=data.metadata,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    _publish(obj)
    return obj

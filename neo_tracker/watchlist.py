import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas

logger = logging.getLogger(__name__)


class AlreadyWatchingError(Exception):
    """The user already has a watch entry for this asteroid."""


def list_watched(db: Session, user_id: str) -> List[models.WatchedAsteroid]:
    return (
        db.query(models.WatchedAsteroid)
        .filter(models.WatchedAsteroid.user_id == user_id)
        .order_by(models.WatchedAsteroid.created_at.desc(), models.WatchedAsteroid.id.desc())
        .all()
    )


def count_watched(db: Session, user_id: str) -> int:
    return db.query(models.WatchedAsteroid).filter_by(user_id=user_id).count()


def is_watching(db: Session, user_id: str, neo_id: str) -> bool:
    return (
        db.query(models.WatchedAsteroid.id)
        .filter_by(user_id=user_id, neo_id=neo_id)
        .first()
        is not None
    )


def add_watch(db: Session, user_id: str, data: schemas.WatchCreate) -> models.WatchedAsteroid:
    obj = models.WatchedAsteroid(user_id=user_id, **data.model_dump())
    db.add(obj)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AlreadyWatchingError(data.neo_id) from exc
    db.refresh(obj)
    logger.info("User %s started watching %s", user_id, data.neo_id)
    return obj


def update_watch(
    db: Session, user_id: str, watch_id: int, updates: schemas.WatchUpdate
) -> Optional[models.WatchedAsteroid]:
    obj = db.query(models.WatchedAsteroid).filter_by(id=watch_id, user_id=user_id).first()
    if obj is None:
        return None
    for key, value in updates.model_dump(exclude_unset=True).items():
        # notes and threshold may be cleared, the flag may not
        if key == "alert_enabled" and value is None:
            continue
        setattr(obj, key, value)
    db.commit()
    db.refresh(obj)
    return obj


def remove_watch(db: Session, user_id: str, neo_id: str) -> bool:
    obj = db.query(models.WatchedAsteroid).filter_by(user_id=user_id, neo_id=neo_id).first()
    if obj is None:
        return False
    db.delete(obj)
    db.commit()
    return True

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import Favourite

logger = logging.getLogger("chefhub.favourites")


def toggle(db: Session, user_id: int, target_id: int, like_type: str) -> bool:
    """Flip the like. Returns the new state (True = liked)."""
    existing = db.scalar(
        select(Favourite).where(
            Favourite.user_id == user_id,
            Favourite.to_id == target_id,
            Favourite.like_type == like_type,
        )
    )
    if existing is not None:
        db.delete(existing)
        db.commit()
        return False

    db.add(Favourite(user_id=user_id, to_id=target_id, like_type=like_type))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Like {like_type}:{target_id} by user {user_id} already recorded")
    return True


def liked_ids(db: Session, user_id: int, like_type: str, target_ids: Iterable[int]) -> set[int]:
    target_ids = list(target_ids)
    if not target_ids:
        return set()
    return set(
        db.scalars(
            select(Favourite.to_id).where(
                Favourite.user_id == user_id,
                Favourite.like_type == like_type,
                Favourite.to_id.in_(target_ids),
            )
        ).all()
    )


def is_liked(db: Session, user_id: int, target_id: int, like_type: str) -> bool:
    return target_id in liked_ids(db, user_id, like_type, [target_id])

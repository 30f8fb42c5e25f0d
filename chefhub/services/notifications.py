"""Notification dispatch: persisted in-app rows plus best-effort device push.

Both steps run after the caller's primary write has been committed. A failure
in either is logged and swallowed so it never fails or unwinds the request.
"""

import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import Depends
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.pagination import Page, PageParams, paginate
from ..db import get_db
from ..models import Device, Notification, User
from ..schemas import NotificationOut
from .push import BatchResult, PushGateway, get_push_gateway

logger = logging.getLogger("chefhub.notifications")

Audience = Literal["customer", "chef"]


class NotificationService:
    def __init__(self, db: Session, gateway: PushGateway):
        self.db = db
        self.gateway = gateway

    def device_tokens(self, user_id: int) -> list[str]:
        return list(
            self.db.scalars(
                select(Device.registration_id).where(
                    Device.user_id == user_id, Device.registration_id != ""
                )
            ).all()
        )

    def push_to_user(
        self, user_id: int, title: str, body: str, data: Optional[dict] = None
    ) -> Optional[BatchResult]:
        """Push to every registered device of `user_id`. Returns None when nothing was sent."""
        try:
            tokens = self.device_tokens(user_id)
        except SQLAlchemyError as e:
            logger.error(f"Device lookup failed for user {user_id}: {e}")
            return None
        if not tokens:
            logger.info(f"No devices registered for user {user_id}, push skipped")
            return None
        try:
            result = self.gateway.send_batch(tokens, title, body, data)
        except Exception as e:
            logger.error(f"Push to user {user_id} failed: {e}")
            return None
        logger.info(
            f"Push to user {user_id}: {result.success_count} sent, {result.failure_count} failed"
        )
        return result

    def notify(
        self,
        *,
        recipient_id: int,
        audience: Audience,
        title: str,
        body: str,
        type: str = "order",
        order_id: Optional[int] = None,
        data: Optional[dict] = None,
    ) -> Optional[Notification]:
        """Persist a Notification for `recipient_id` and push it to their devices."""
        row = Notification(
            user_id=recipient_id if audience == "customer" else None,
            rest_id=recipient_id if audience == "chef" else None,
            order_id=order_id,
            title=title,
            body=body,
            type=type,
            seen=False,
            created_at=datetime.now(timezone.utc),
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to store notification for user {recipient_id}: {e}")
            row = None

        payload = {"type": type, **(data or {})}
        if order_id is not None:
            payload.setdefault("order_id", order_id)
        self.push_to_user(recipient_id, title, body, payload)
        return row


def get_notification_service(
    db: Session = Depends(get_db),
    gateway: PushGateway = Depends(get_push_gateway),
) -> NotificationService:
    return NotificationService(db, gateway)


def _audience_filter(user: User):
    # Chefs also place orders, so they see customer-side rows too
    if user.is_chef:
        return or_(Notification.user_id == user.id, Notification.rest_id == user.id)
    return Notification.user_id == user.id


def list_notifications(
    db: Session,
    user: User,
    params: PageParams,
    *,
    type: Optional[str] = None,
    seen: Optional[bool] = None,
    mark_as_seen: bool = False,
) -> Page:
    """Newest first. Chefs see chef-audience rows, customers see customer-audience rows."""
    stmt = select(Notification).where(_audience_filter(user))
    if type:
        stmt = stmt.where(Notification.type == type)
    if seen is not None:
        stmt = stmt.where(Notification.seen == seen)
    page = paginate(db, stmt.order_by(Notification.created_at.desc(), Notification.id.desc()), params)
    ids = [n.id for n in page.items]
    # Serialize before marking so the page shows the state the caller had not seen yet
    page = page.map(lambda n: NotificationOut.model_validate(n).model_dump(mode="json"))

    if mark_as_seen and ids:
        db.execute(
            update(Notification).where(Notification.id.in_(ids)).values(seen=True)
        )
        db.commit()

    unseen = db.scalar(
        select(func.count()).select_from(Notification).where(
            _audience_filter(user), Notification.seen.is_(False)
        )
    )
    page.extra["unseen_count"] = unseen or 0
    return page
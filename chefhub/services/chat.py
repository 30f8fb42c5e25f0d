"""Per-order chat between the order's customer and chef."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from ..core.pagination import Page, PageParams, paginate
from ..errors import Forbidden, NotFound
from ..models import Chat, Order, User
from ..schemas import ChatMessageOut, ChatSend, ChatSender
from .notifications import NotificationService

logger = logging.getLogger("chefhub.chat")


def load_chat_order(db: Session, order_id: int, user: User) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found")
    if not order.is_participant(user.id):
        raise Forbidden("You are not authorized to access messages for this order")
    return order


def counterpart_id(order: Order, user_id: int) -> int:
    return order.to_id if user_id == order.user_id else order.user_id


def serialize_message(message: Chat, viewer_id: int) -> dict:
    return ChatMessageOut(
        id=message.id,
        order_id=message.order_id,
        msg=message.msg,
        msg_type=message.msg_type,
        seen=message.seen,
        created_at=message.created_at,
        is_mine=message.user_id == viewer_id,
        sender=ChatSender.model_validate(message.sender),
    ).model_dump(mode="json")


def send_message(
    db: Session, order_id: int, sender: User, payload: ChatSend, notifier: NotificationService
) -> Chat:
    order = load_chat_order(db, order_id, sender)
    recipient_id = counterpart_id(order, sender.id)

    message = Chat(
        order_id=order.id,
        user_id=sender.id,
        to_id=recipient_id,
        msg=payload.msg,
        msg_type=payload.msg_type,
        seen=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    logger.info(f"Chat message {message.id} on order {order.id} from user {sender.id}")

    preview = payload.msg if payload.msg_type == 0 else "Sent an image"
    notifier.push_to_user(
        recipient_id,
        f"New Message - Order #{order.order_no}",
        f"{sender.name}: {preview}",
        {
            "type": "chat_message",
            "order_id": order.id,
            "sender_id": sender.id,
            "sender_name": sender.name,
            "message": preview,
        },
    )
    return message


def mark_as_seen(db: Session, order_id: int, user: User) -> int:
    """Flag every unseen message addressed to `user` on this order. Returns rows updated."""
    load_chat_order(db, order_id, user)
    updated = _mark_seen(db, order_id, user.id)
    db.commit()
    return updated


def _mark_seen(db: Session, order_id: int, user_id: int) -> int:
    result = db.execute(
        update(Chat)
        .where(Chat.order_id == order_id, Chat.to_id == user_id, Chat.seen.is_(False))
        .values(seen=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def get_chat(db: Session, order_id: int, user: User, params: PageParams) -> Page:
    """Oldest-first page of the conversation. Reading marks the caller's unseen messages as seen."""
    order = load_chat_order(db, order_id, user)
    marked = _mark_seen(db, order.id, user.id)
    stmt = (
        select(Chat)
        .options(selectinload(Chat.sender))
        .where(Chat.order_id == order.id)
        .order_by(Chat.created_at.asc(), Chat.id.asc())
    )
    page = paginate(db, stmt, params).map(lambda m: serialize_message(m, user.id))
    db.commit()
    page.extra["marked_seen"] = marked
    page.extra["order"] = {"id": order.id, "order_no": order.order_no, "status": order.status}
    return page


def check_new_messages(db: Session, order_id: int, user: User) -> dict:
    order = load_chat_order(db, order_id, user)
    unseen = (Chat.order_id == order.id, Chat.to_id == user.id, Chat.seen.is_(False))
    count = db.scalar(select(func.count()).select_from(Chat).where(*unseen)) or 0
    latest: Optional[Chat] = db.scalar(
        select(Chat)
        .options(selectinload(Chat.sender))
        .where(*unseen)
        .order_by(Chat.created_at.desc(), Chat.id.desc())
        .limit(1)
    )
    return {
        "unread_count": count,
        "latest_message": serialize_message(latest, user.id) if latest else None,
    }

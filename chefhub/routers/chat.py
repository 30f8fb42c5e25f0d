from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..core.envelope import ok
from ..core.pagination import PageParams, page_params
from ..deps import get_current_user, get_db
from ..models import User
from ..services import chat
from ..services.notifications import NotificationService, get_notification_service

router = APIRouter(prefix="/orders/{order_id}/chat")


@router.get("")
def get_chat(
    order_id: int,
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Read the conversation; marks messages addressed to the caller as seen."""
    return ok(data=chat.get_chat(db, order_id, user, params).to_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
def send_message(
    order_id: int,
    payload: schemas.ChatSend,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    message = chat.send_message(db, order_id, user, payload, notifier)
    return ok(data=chat.serialize_message(message, user.id), message="Message sent successfully")


@router.get("/unread")
def check_new_messages(
    order_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(data=chat.check_new_messages(db, order_id, user))


@router.post("/seen")
def mark_as_seen(
    order_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = chat.mark_as_seen(db, order_id, user)
    return ok(data={"updated": updated}, message="Messages marked as seen")

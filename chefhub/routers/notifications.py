from typing import Literal, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.envelope import ok
from ..core.pagination import PageParams, page_params
from ..deps import get_current_user, get_db
from ..models import User
from ..services.notifications import list_notifications

router = APIRouter()


@router.get("/notifications")
def get_notifications(
    type: Optional[Literal["order", "news"]] = None,
    seen: Optional[bool] = None,
    mark_as_seen: bool = False,
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    page = list_notifications(db, user, params, type=type, seen=seen, mark_as_seen=mark_as_seen)
    return ok(data=page.to_dict())

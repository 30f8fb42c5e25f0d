from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..core.envelope import ok
from ..core.pagination import PageParams, page_params
from ..deps import get_current_user, get_db
from ..infra.idempotency import idempotency_clear_key, idempotency_precheck, idempotency_store_result
from ..models import User
from ..services import orders
from ..services.notifications import NotificationService, get_notification_service
from ..services.payments import PaymentGateway, get_payment_gateway

router = APIRouter()


@router.post("/orders", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: schemas.OrderCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    """Place an order with a chef. Retries with the same Idempotency-Key replay the first response."""
    pre = idempotency_precheck(
        idempotency_key, principal_id=user.id, route_key="order_create", payload=payload.model_dump_json()
    )
    if isinstance(pre, JSONResponse):
        return pre

    try:
        order = orders.create_order(db, user, payload, notifier)
        body = ok(
            data=orders.serialize_orders(db, [order], with_chef=True, with_customer=False)[0],
            message="Order created successfully",
        )
    except Exception:
        if pre:
            idempotency_clear_key(pre[0])
        raise

    if pre:
        idempotency_store_result(pre[0], pre[1], status=201, body=body)
    return body


@router.get("/orders")
def list_orders(
    status: Optional[schemas.OrderStatus] = None,
    sort: Literal["newest", "oldest"] = "newest",
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(data=orders.list_customer_orders(db, user, params, status, sort).to_dict())


@router.get("/orders/{order_id}")
def order_details(
    order_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(data=orders.order_details(db, order_id, user))


@router.post("/orders/{order_id}/review", status_code=status.HTTP_201_CREATED)
def add_review(
    order_id: int,
    payload: schemas.ReviewCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = orders.add_review(db, order_id, user, payload)
    return ok(
        data=schemas.ReviewOut.model_validate(review).model_dump(mode="json"),
        message="Review added successfully",
    )


@router.post("/payment/create-intent")
def create_payment_intent(
    payload: schemas.PaymentIntentRequest,
    user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    pre = idempotency_precheck(
        idempotency_key, principal_id=user.id, route_key="payment_intent", payload=payload.model_dump_json()
    )
    if isinstance(pre, JSONResponse):
        return pre

    try:
        intent = gateway.create_intent(payload.amount, payload.currency, user_id=user.id)
    except Exception:
        if pre:
            idempotency_clear_key(pre[0])
        raise

    body = ok(data=intent)
    if pre:
        idempotency_store_result(pre[0], pre[1], status=200, body=body)
    return body

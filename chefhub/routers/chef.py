"""Chef-side endpoints: onboarding, profile status, catalog, orders and payouts."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..core.envelope import ok
from ..core.pagination import PageParams, page_params
from ..deps import get_current_user, get_db, require_chef
from ..models import User
from ..services import auth as auth_service
from ..services import catalog, orders, wallet
from ..services.notifications import NotificationService, get_notification_service

router = APIRouter(prefix="/chef")


@router.post("/onboard")
def onboard(
    payload: schemas.ChefOnboardRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = auth_service.onboard_chef(db, user, payload.model_dump())
    return ok(
        data=schemas.UserOut.model_validate(user).model_dump(mode="json"),
        message="Chef profile created successfully",
    )


@router.post("/status")
def update_status(
    payload: schemas.ChefStatusUpdate,
    chef: User = Depends(require_chef),
    db: Session = Depends(get_db),
):
    chef.rest_status = payload.status
    db.commit()
    return ok(data={"rest_status": chef.rest_status}, message="Chef status updated successfully")


@router.post("/bank-details")
def update_bank_details(
    payload: schemas.BankDetailsUpdate,
    chef: User = Depends(require_chef),
    db: Session = Depends(get_db),
):
    chef.bank_details = {"payment_method": payload.payment_method, **payload.details}
    db.commit()
    return ok(data={"bank_details": chef.bank_details}, message="Bank details updated successfully")


# --- Catalog ---

@router.post("/dishes", status_code=status.HTTP_201_CREATED)
def add_dish(
    payload: schemas.DishCreate,
    chef: User = Depends(require_chef),
    db: Session = Depends(get_db),
):
    dish = catalog.add_dish(db, chef, payload)
    return ok(data=catalog.serialize_dishes(db, [dish])[0], message="Dish added successfully")


@router.get("/dishes")
def list_dishes(
    dish_type: Optional[Literal["dish", "offer"]] = None,
    params: PageParams = Depends(page_params),
    chef: User = Depends(require_chef),
    db: Session = Depends(get_db),
):
    return ok(data=catalog.list_dishes(db, chef, params, dish_type).to_dict())


@router.put("/dishes/{dish_id}")
def update_dish(
    dish_id: int,
    payload: schemas.DishUpdate,
    chef: User = Depends(require_chef),
    db: Session = Depends(get_db),
):
    dish = catalog.update_dish(db, chef, dish_id, payload)
    return ok(data=catalog.serialize_dishes(db, [dish])[0], message="Dish updated successfully")


@router.delete("/dishes/{dish_id}")
def delete_dish(
    dish_id: int,
    chef: User = Depends(require_chef),
    db: Session = Depends(get_db),
):
    catalog.delete_dish(db, chef, dish_id)
    return ok(message="Dish deleted successfully")


# --- Orders ---

@router.get("/orders")
def chef_orders(
    status: Optional[schemas.OrderStatus] = None,
    params: PageParams = Depends(page_params),
    chef: User = Depends(require_chef),
    db: Session = Depends(get_db),
):
    return ok(data=orders.list_chef_orders(db, chef, params, status).to_dict())


@router.put("/orders/{order_id}/status")
def update_order_status(
    order_id: int,
    payload: schemas.OrderStatusUpdate,
    chef: User = Depends(require_chef),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    order = orders.update_order_status(db, order_id, chef, payload.status, notifier)
    return ok(
        data=orders.serialize_orders(db, [order], with_chef=False, with_customer=True)[0],
        message="Order status updated successfully",
    )


# --- Wallet ---

@router.post("/withdraw", status_code=status.HTTP_201_CREATED)
def request_withdrawal(
    payload: schemas.WithdrawRequest,
    chef: User = Depends(require_chef),
    db: Session = Depends(get_db),
):
    withdraw = wallet.request_withdrawal(db, chef, payload.amount)
    db.refresh(chef)
    return ok(
        data=schemas.WithdrawOut.model_validate(withdraw).model_dump(mode="json"),
        message="Withdrawal request submitted successfully",
        available_balance=chef.balance,
    )


@router.get("/withdrawals")
def list_withdrawals(
    params: PageParams = Depends(page_params),
    chef: User = Depends(require_chef),
    db: Session = Depends(get_db),
):
    page = wallet.list_withdrawals(db, chef, params).map(
        lambda w: schemas.WithdrawOut.model_validate(w).model_dump(mode="json")
    )
    return ok(data=page.to_dict(), available_balance=chef.balance)

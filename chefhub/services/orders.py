"""Order lifecycle: creation, chef-driven status changes, details and reviews.

Status flow:
    pending -> accepted | rejected
    accepted -> processing | cancelled
    processing -> completed | cancelled

The only hard guard is that nothing leaves `completed` or `cancelled`. Other
off-table moves are accepted and logged so they stay visible in operations.
"""

import logging
import random
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from ..core.geo import distance_between
from ..core.pagination import Page, PageParams, paginate
from ..errors import Conflict, InvalidState, NotFound, ValidationError
from ..models import Dish, Order, OrderHistory, Review, User
from ..schemas import OrderCreate, OrderDetailOut, OrderOut, PartySummary, ReviewCreate, ReviewOut
from . import ratings, wallet
from .notifications import NotificationService

logger = logging.getLogger("chefhub.orders")

TRANSITIONS: dict[str, set[str]] = {
    "pending": {"accepted", "rejected"},
    "accepted": {"processing", "cancelled"},
    "processing": {"completed", "cancelled"},
    "completed": set(),
    "rejected": set(),
    "cancelled": set(),
}
TARGET_STATUSES = ("accepted", "rejected", "processing", "completed", "cancelled")
LOCKED_STATUSES = ("completed", "cancelled")

STATUS_MESSAGES = {
    "accepted": "Your order #{no} has been accepted",
    "rejected": "Your order #{no} has been rejected",
    "processing": "Your order #{no} is being prepared",
    "completed": "Your order #{no} has been completed",
    "cancelled": "Your order #{no} has been cancelled",
}


def generate_order_no() -> int:
    return random.randint(10_000_000, 99_999_999)


def check_transition(current: str, new_status: str) -> None:
    if new_status not in TARGET_STATUSES:
        raise ValidationError.field("status", f"Unsupported status '{new_status}'")
    if current in LOCKED_STATUSES:
        raise InvalidState(f"Order is already {current} and can no longer change")
    if new_status not in TRANSITIONS.get(current, set()):
        logger.warning(f"Off-table order transition {current} -> {new_status} accepted")


def _resolve_cart(db: Session, chef_id: int, payload: OrderCreate) -> list[dict]:
    """Every cart line must reference one of the chef's dishes; names default to the dish name."""
    dish_ids = {item.dish_id for item in payload.cart_items}
    names = dict(
        db.execute(
            select(Dish.id, Dish.name).where(Dish.id.in_(dish_ids), Dish.user_id == chef_id)
        ).all()
    )
    missing = sorted(dish_ids - names.keys())
    if missing:
        raise ValidationError.field(
            "cart_items", f"Dishes {missing} do not belong to this chef"
        )
    return [
        {
            "dish_id": item.dish_id,
            "name": item.name or names[item.dish_id],
            "qty": item.qty,
            "price": item.price,
        }
        for item in payload.cart_items
    ]


def create_order(
    db: Session, customer: User, payload: OrderCreate, notifier: NotificationService
) -> Order:
    if payload.to_id == customer.id:
        raise ValidationError.field("to_id", "You cannot order from yourself")
    chef = db.get(User, payload.to_id)
    if chef is None or not chef.is_chef:
        raise NotFound("Chef not found")

    order = Order(
        order_no=generate_order_no(),
        order_type=payload.order_type,
        user_id=customer.id,
        to_id=chef.id,
        amount=payload.amount,
        delivery_fee=payload.delivery_fee,
        service_fee=payload.service_fee,
        cart_items=_resolve_cart(db, chef.id, payload),
        address=payload.address,
        lat=payload.lat,
        lng=payload.lng,
        chef_lat=chef.current_lat,
        chef_lng=chef.current_lng,
        status="pending",
        payment_method=payload.payment_method,
        txn_id=payload.txn_id,
    )
    db.add(order)
    db.flush()
    db.add(OrderHistory(order_id=order.id, status="pending", actor_id=customer.id))
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} (#{order.order_no}) created by user {customer.id} for chef {chef.id}")

    notifier.notify(
        recipient_id=chef.id,
        audience="chef",
        title="New Order Received",
        body=f"You have received a new order #{order.order_no}",
        type="order",
        order_id=order.id,
        data={"event": "new_order"},
    )
    return order


def update_order_status(
    db: Session, order_id: int, chef: User, new_status: str, notifier: NotificationService
) -> Order:
    """Move an order to `new_status` on behalf of its chef.

    The row is locked and the write only applies if the status is still the
    one that passed the guard, so two racing requests cannot both succeed.
    """
    order = db.scalar(
        select(Order).where(Order.id == order_id, Order.to_id == chef.id).with_for_update()
    )
    if order is None:
        raise NotFound("Order not found or you do not have permission to update it")

    previous = order.status
    check_transition(previous, new_status)

    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == previous)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise Conflict("Order status changed concurrently, reload and try again")

    db.add(OrderHistory(order_id=order.id, status=new_status, actor_id=chef.id))
    if new_status == "completed":
        wallet.credit_balance(db, chef.id, (order.amount or 0) + (order.delivery_fee or 0))
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} moved {previous} -> {new_status} by chef {chef.id}")

    notifier.notify(
        recipient_id=order.user_id,
        audience="customer",
        title="Order Status Updated",
        body=STATUS_MESSAGES[new_status].format(no=order.order_no),
        type="order",
        order_id=order.id,
        data={"event": "order_status", "status": new_status},
    )
    return order


def _party(user: User, averages: Optional[dict] = None) -> dict:
    summary = PartySummary.model_validate(user)
    if averages is not None:
        summary.rating, summary.reviews_count = ratings.rating_for(averages, user.id)
    return summary.model_dump()


def serialize_orders(db: Session, orders: list[Order], *, with_chef: bool, with_customer: bool) -> list[dict]:
    averages = ratings.average_ratings(db, Review.rest_id, [o.to_id for o in orders]) if with_chef else None
    out = []
    for order in orders:
        item = OrderOut.model_validate(order).model_dump(mode="json", exclude={"chef", "customer"})
        if with_chef:
            item["chef"] = _party(order.chef, averages)
        if with_customer:
            item["customer"] = _party(order.customer)
        out.append(item)
    return out


def list_customer_orders(
    db: Session, customer: User, params: PageParams, status: Optional[str] = None, sort: str = "newest"
) -> Page:
    stmt = select(Order).options(selectinload(Order.chef)).where(Order.user_id == customer.id)
    if status:
        stmt = stmt.where(Order.status == status)
    if sort == "oldest":
        stmt = stmt.order_by(Order.created_at.asc(), Order.id.asc())
    else:
        stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc())
    page = paginate(db, stmt, params)
    page.items = serialize_orders(db, page.items, with_chef=True, with_customer=False)
    return page


def list_chef_orders(db: Session, chef: User, params: PageParams, status: Optional[str] = None) -> Page:
    stmt = select(Order).options(selectinload(Order.customer)).where(Order.to_id == chef.id)
    if status:
        stmt = stmt.where(Order.status == status)
    page = paginate(db, stmt.order_by(Order.created_at.desc(), Order.id.desc()), params)
    page.items = serialize_orders(db, page.items, with_chef=False, with_customer=True)
    return page


def get_participant_order(db: Session, order_id: int, user: User) -> Order:
    order = db.get(Order, order_id)
    if order is None or not order.is_participant(user.id):
        raise NotFound("Order not found")
    return order


def order_details(db: Session, order_id: int, user: User) -> dict:
    order = get_participant_order(db, order_id, user)
    review = db.scalar(
        select(Review).options(selectinload(Review.user)).where(Review.order_id == order.id)
    )
    chef_rating = ratings.average_ratings(db, Review.rest_id, [order.to_id])

    detail = OrderDetailOut.model_validate(order)
    detail.chef = PartySummary(**_party(order.chef, chef_rating))
    detail.customer = PartySummary(**_party(order.customer))
    detail.distance = distance_between(order.lat, order.lng, order.chef_lat, order.chef_lng)
    detail.review = ReviewOut.model_validate(review) if review else None
    detail.has_review = review is not None
    return detail.model_dump(mode="json")


def add_review(db: Session, order_id: int, customer: User, payload: ReviewCreate) -> Review:
    order = db.scalar(
        select(Order).where(
            Order.id == order_id, Order.user_id == customer.id, Order.status == "completed"
        )
    )
    if order is None:
        raise NotFound("Order not found or cannot be reviewed")

    existing = db.scalar(
        select(Review.id).where(Review.order_id == order.id, Review.user_id == customer.id)
    )
    if existing is not None:
        raise Conflict("You have already reviewed this order")

    if payload.dish_id is not None:
        cart_dish_ids = {item.get("dish_id") for item in order.cart_items or []}
        if payload.dish_id not in cart_dish_ids:
            raise ValidationError.field("dish_id", "This dish is not part of the order")

    review = Review(
        user_id=customer.id,
        order_id=order.id,
        rest_id=order.to_id,
        dish_id=payload.dish_id,
        rating=payload.rating,
        detail=payload.detail or "",
        gallery=payload.gallery,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    logger.info(f"Review {review.id} ({review.rating}*) added to order {order.id}")
    return review

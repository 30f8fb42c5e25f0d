"""Chef catalog. Every operation is scoped by the authenticated chef's id."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..core.pagination import Page, PageParams, paginate
from ..errors import NotFound, ValidationError
from ..models import Cuisine, Dish, Review, User
from ..schemas import DishCreate, DishOut, DishUpdate
from . import ratings

logger = logging.getLogger("chefhub.catalog")


def _check_cuisine(db: Session, cuisine_id: int) -> None:
    if db.get(Cuisine, cuisine_id) is None:
        raise ValidationError.field("cuisine_id", "The selected cuisine id is invalid.")


def _owned_dish(db: Session, chef: User, dish_id: int, action: str) -> Dish:
    dish = db.scalar(select(Dish).where(Dish.id == dish_id, Dish.user_id == chef.id))
    if dish is None:
        raise NotFound(f"Dish not found or you do not have permission to {action} it")
    return dish


def add_dish(db: Session, chef: User, payload: DishCreate) -> Dish:
    _check_cuisine(db, payload.cuisine_id)
    dish = Dish(user_id=chef.id, **payload.model_dump())
    db.add(dish)
    db.commit()
    db.refresh(dish)
    logger.info(f"Chef {chef.id} added dish {dish.id}")
    return dish


def update_dish(db: Session, chef: User, dish_id: int, payload: DishUpdate) -> Dish:
    """Apply only the fields present in the request body."""
    dish = _owned_dish(db, chef, dish_id, "update")
    changes = payload.model_dump(exclude_unset=True)
    if "cuisine_id" in changes:
        _check_cuisine(db, changes["cuisine_id"])
    for key, value in changes.items():
        setattr(dish, key, value)
    db.commit()
    db.refresh(dish)
    return dish


def delete_dish(db: Session, chef: User, dish_id: int) -> None:
    dish = _owned_dish(db, chef, dish_id, "delete")
    db.delete(dish)
    db.commit()
    logger.info(f"Chef {chef.id} deleted dish {dish_id}")


def serialize_dishes(db: Session, dishes: list[Dish]) -> list[dict]:
    averages = ratings.average_ratings(db, Review.dish_id, [d.id for d in dishes])
    out = []
    for dish in dishes:
        item = DishOut.model_validate(dish)
        item.rating, item.reviews_count = ratings.rating_for(averages, dish.id)
        out.append(item.model_dump(mode="json"))
    return out


def list_dishes(db: Session, chef: User, params: PageParams, dish_type: Optional[str] = None) -> Page:
    stmt = select(Dish).options(selectinload(Dish.cuisine)).where(Dish.user_id == chef.id)
    if dish_type:
        stmt = stmt.where(Dish.dish_type == dish_type)
    page = paginate(db, stmt.order_by(Dish.created_at.desc(), Dish.id.desc()), params)
    page.items = serialize_dishes(db, page.items)
    return page

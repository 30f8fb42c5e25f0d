"""Customer-facing discovery and favourites."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import schemas
from ..core.envelope import ok
from ..core.pagination import PageParams, page_params
from ..deps import get_current_user, get_db
from ..errors import NotFound, ValidationError
from ..models import Dish, User
from ..services import discovery, favourites, ratings

router = APIRouter()


@router.get("/home")
def home(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(data=discovery.home_feed(db, user))


@router.get("/chefs")
def list_chefs(
    filter: list[Literal["popular", "top_rated", "open_now"]] = Query([]),
    sort_by: Optional[Literal["price_low", "price_high", "rating", "distance"]] = None,
    cuisine_id: Optional[int] = None,
    current_lat: Optional[float] = Query(None, ge=-90, le=90),
    current_lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0),
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Search chefs. `filter` may repeat; coordinates enable the radius filter and distance sort."""
    if (current_lat is None) != (current_lng is None):
        raise ValidationError(
            errors={"current_lat": ["current_lat and current_lng must be sent together."]}
        )
    search = discovery.ChefSearchParams(
        filters=set(filter),
        cuisine_id=cuisine_id,
        current_lat=current_lat,
        current_lng=current_lng,
        radius=radius,
        sort_by=sort_by,
    )
    return ok(data=discovery.search_chefs(db, user, search, params).to_dict())


@router.get("/chef/{chef_id}/dishes")
def chef_dishes(chef_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(data=discovery.chef_menu(db, chef_id, user))


@router.get("/chef/{chef_id}/reviews")
def chef_reviews(
    chef_id: int,
    rating: Optional[int] = Query(None, ge=1, le=5),
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    chef = db.scalar(select(User).where(User.id == chef_id, User.user_type == "chef"))
    if chef is None:
        raise NotFound("Chef not found")
    page = ratings.chef_reviews(db, chef.id, params, rating).map(
        lambda r: {
            **schemas.ReviewOut.model_validate(r).model_dump(mode="json"),
            "dish": {"id": r.dish.id, "name": r.dish.name} if r.dish else None,
        }
    )
    return ok(data=page.to_dict())


@router.post("/dishes/{dish_id}/like")
def like_dish(dish_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if db.get(Dish, dish_id) is None:
        raise NotFound("Dish not found")
    liked = favourites.toggle(db, user.id, dish_id, "dishes")
    return ok(data={"is_liked": liked}, message="Dish liked" if liked else "Dish unliked")


@router.post("/chefs/{chef_id}/like")
def like_chef(chef_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    chef = db.get(User, chef_id)
    if chef is None or not chef.is_chef:
        raise NotFound("Chef not found")
    liked = favourites.toggle(db, user.id, chef_id, "users")
    return ok(data={"is_liked": liked}, message="Chef liked" if liked else "Chef unliked")

"""Chef discovery: home feed, filtered chef search and a chef's public menu."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import Select, and_, distinct, func, literal, select
from sqlalchemy.orm import Session, selectinload

from ..core.geo import haversine_sql
from ..core.pagination import Page, PageParams, paginate
from ..errors import NotFound
from ..models import Cuisine, Dish, Favourite, Order, Review, User
from ..schemas import CuisineOut, DishOut, PartySummary
from ..settings import settings
from . import favourites, ratings
from .orders import serialize_orders

logger = logging.getLogger("chefhub.discovery")

CHEF_FILTERS = ("popular", "top_rated", "open_now")
CHEF_SORTS = ("price_low", "price_high", "rating", "distance")

HOME_RECENT_ORDERS = 5
HOME_TOP_CHEFS = 10
HOME_POPULAR_DISHES = 10


@dataclass
class ChefSearchParams:
    filters: set[str] = field(default_factory=set)
    cuisine_id: Optional[int] = None
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    radius: Optional[float] = None
    sort_by: Optional[str] = None

    @property
    def has_location(self) -> bool:
        return self.current_lat is not None and self.current_lng is not None


class ChefSearch:
    """Builds the chef listing query.

    Each related table is joined at most once no matter how many filters or
    sorts need it; joins switch the query to GROUP BY users.id.
    """

    def __init__(self, viewer_id: int, params: ChefSearchParams):
        self.viewer_id = viewer_id
        self.params = params
        self.stmt: Select = select(User).where(User.user_type == "chef")
        self._joined: set[str] = set()
        self._ordering: list = []
        self.distance = None

    def _join(self, name: str, target, onclause) -> None:
        if name in self._joined:
            return
        if not self._joined:
            self.stmt = self.stmt.group_by(User.id)
        self.stmt = self.stmt.outerjoin(target, onclause)
        self._joined.add(name)

    def _avg_rating(self):
        self._join("reviews", Review, Review.rest_id == User.id)
        return func.coalesce(func.avg(Review.rating), 0)

    def _completed_orders(self):
        self._join("orders", Order, and_(Order.to_id == User.id, Order.status == "completed"))
        return func.count(distinct(Order.id))

    def _dishes(self):
        self._join("dishes", Dish, Dish.user_id == User.id)
        return Dish.price

    def _order_by(self, *clauses) -> None:
        self._ordering.extend(clauses)

    def apply_filters(self) -> None:
        p = self.params
        if "popular" in p.filters:
            self._order_by(self._completed_orders().desc())
        if "top_rated" in p.filters:
            self._order_by(self._avg_rating().desc())
        if "open_now" in p.filters:
            # Schedule windows are not evaluated; status is the only signal.
            self.stmt = self.stmt.where(User.rest_status == "available")
        if p.cuisine_id is not None:
            self.stmt = self.stmt.where(
                select(Dish.id)
                .where(Dish.user_id == User.id, Dish.cuisine_id == p.cuisine_id)
                .exists()
            )
        if p.has_location:
            radius = p.radius if p.radius is not None else settings.default_search_radius_km
            self.distance = haversine_sql(p.current_lat, p.current_lng, User.current_lat, User.current_lng)
            self.stmt = self.stmt.where(
                User.current_lat.is_not(None),
                User.current_lng.is_not(None),
                self.distance <= radius,
            )

    def apply_sort(self) -> None:
        sort_by = self.params.sort_by
        if sort_by == "price_low":
            self._order_by(func.min(self._dishes()).asc().nulls_last())
        elif sort_by == "price_high":
            self._order_by(func.max(self._dishes()).desc().nulls_last())
        elif sort_by == "rating" and "top_rated" not in self.params.filters:
            self._order_by(self._avg_rating().desc())
        elif sort_by == "distance" and self.distance is not None:
            self._order_by(self.distance.asc())

    def build(self) -> Select:
        self.apply_filters()
        self.apply_sort()
        liked = (
            select(Favourite.id)
            .where(
                Favourite.user_id == self.viewer_id,
                Favourite.to_id == User.id,
                Favourite.like_type == "users",
            )
            .exists()
        )
        stmt = self.stmt.add_columns(liked.label("is_liked"))
        if self.distance is not None:
            stmt = stmt.add_columns(self.distance.label("distance"))
        return stmt.order_by(*self._ordering, User.id.asc())


def chef_card(chef: User, *, is_liked: bool, distance: Optional[float], rating: tuple[float, int]) -> dict:
    return {
        "id": chef.id,
        "first_name": chef.first_name,
        "last_name": chef.last_name,
        "name": chef.name,
        "image": chef.image,
        "about": chef.about,
        "address": chef.address,
        "city": chef.city,
        "current_lat": chef.current_lat,
        "current_lng": chef.current_lng,
        "rest_status": chef.rest_status,
        "is_liked": bool(is_liked),
        "distance": round(distance, 2) if distance is not None else None,
        "rating": rating[0],
        "reviews_count": rating[1],
    }


def search_chefs(db: Session, viewer: User, params: ChefSearchParams, page_params: PageParams) -> Page:
    stmt = ChefSearch(viewer.id, params).build()
    logger.debug(f"Chef search filters={sorted(params.filters)} sort={params.sort_by} geo={params.has_location}")
    page = paginate(db, stmt, page_params, scalars=False)
    averages = ratings.average_ratings(db, Review.rest_id, [row[0].id for row in page.items])
    page.items = [
        chef_card(
            row[0],
            is_liked=row._mapping["is_liked"],
            distance=row._mapping.get("distance"),
            rating=ratings.rating_for(averages, row[0].id),
        )
        for row in page.items
    ]
    return page


def _dish_card(dish: DishOut, summary: ratings.RatingSummary, is_liked: bool) -> dict:
    data = dish.model_dump(mode="json")
    data["rating"] = summary.average
    data["reviews_count"] = summary.total_reviews
    data["ratings"] = summary.to_dict()
    data["is_liked"] = is_liked
    return data


def chef_menu(db: Session, chef_id: int, viewer: User) -> dict:
    """Public chef page: profile, rating histogram and every dish with its own histogram."""
    chef = db.scalar(select(User).where(User.id == chef_id, User.user_type == "chef"))
    if chef is None:
        raise NotFound("Chef not found")

    dishes = db.scalars(
        select(Dish).options(selectinload(Dish.cuisine)).where(Dish.user_id == chef.id).order_by(Dish.id)
    ).all()
    dish_ids = [d.id for d in dishes]
    summaries = ratings.dish_rating_summaries(db, dish_ids)
    liked_dishes = favourites.liked_ids(db, viewer.id, "dishes", dish_ids)
    chef_summary = ratings.chef_rating_summary(db, chef.id)

    return {
        "chef": chef_card(
            chef,
            is_liked=favourites.is_liked(db, viewer.id, chef.id, "users"),
            distance=None,
            rating=(chef_summary.average, chef_summary.total_reviews),
        ),
        "chef_ratings": chef_summary.to_dict(),
        "dishes": [
            _dish_card(DishOut.model_validate(d), summaries[d.id], d.id in liked_dishes)
            for d in dishes
        ],
    }


def home_feed(db: Session, user: User) -> dict:
    cuisines = db.scalars(select(Cuisine).order_by(Cuisine.id)).all()

    recent = db.scalars(
        select(Order)
        .options(selectinload(Order.chef))
        .where(Order.user_id == user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(HOME_RECENT_ORDERS)
    ).all()

    completed = func.count(distinct(Order.id)).label("completed_orders")
    top_chefs = db.execute(
        select(User, completed)
        .outerjoin(Order, and_(Order.to_id == User.id, Order.status == "completed"))
        .where(User.user_type == "chef")
        .group_by(User.id)
        .order_by(completed.desc(), User.id.asc())
        .limit(HOME_TOP_CHEFS)
    ).all()

    avg_rating = func.coalesce(func.avg(Review.rating), literal(0)).label("avg_rating")
    popular = db.execute(
        select(Dish, avg_rating)
        .outerjoin(Review, Review.dish_id == Dish.id)
        .group_by(Dish.id)
        .order_by(avg_rating.desc(), Dish.id.asc())
        .limit(HOME_POPULAR_DISHES)
    ).all()

    return {
        "cuisines": [CuisineOut.model_validate(c).model_dump() for c in cuisines],
        "recent_orders": serialize_orders(db, list(recent), with_chef=True, with_customer=False),
        "top_chefs": [
            {**PartySummary.model_validate(chef).model_dump(), "about": chef.about, "completed_orders": count}
            for chef, count in top_chefs
        ],
        "popular_dishes": [
            {
                **DishOut.model_validate(dish).model_dump(mode="json"),
                "rating": round(float(avg or 0), 1),
                "chef": PartySummary.model_validate(dish.chef).model_dump(),
            }
            for dish, avg in popular
        ],
    }

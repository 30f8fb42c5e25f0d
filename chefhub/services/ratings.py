"""Rating aggregation over reviews.

Averages are arithmetic means rounded to one decimal (0 when there are no
reviews). Histograms come from a single scan of the relevant rows, bucketed in
memory, and always carry the keys 1..5.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ..core.pagination import Page, PageParams, paginate
from ..models import Review

STAR_VALUES = (1, 2, 3, 4, 5)


def _empty_histogram() -> dict[int, int]:
    return {star: 0 for star in STAR_VALUES}


@dataclass
class RatingSummary:
    average: float = 0.0
    total_reviews: int = 0
    star_counts: dict[int, int] = field(default_factory=_empty_histogram)

    def to_dict(self) -> dict:
        return {
            "average": self.average,
            "total_reviews": self.total_reviews,
            "star_counts": {str(k): v for k, v in self.star_counts.items()},
        }


def summarize(ratings: Iterable[int]) -> RatingSummary:
    summary = RatingSummary()
    total = 0
    for rating in ratings:
        summary.star_counts[rating] = summary.star_counts.get(rating, 0) + 1
        total += rating
        summary.total_reviews += 1
    if summary.total_reviews:
        summary.average = round(total / summary.total_reviews, 1)
    return summary


def chef_rating_summary(db: Session, chef_id: int) -> RatingSummary:
    return summarize(db.scalars(select(Review.rating).where(Review.rest_id == chef_id)).all())


def dish_rating_summaries(db: Session, dish_ids: list[int]) -> dict[int, RatingSummary]:
    """One query for all dishes; dishes without reviews get an empty summary."""
    buckets: dict[int, list[int]] = {dish_id: [] for dish_id in dish_ids}
    if dish_ids:
        rows = db.execute(
            select(Review.dish_id, Review.rating).where(Review.dish_id.in_(dish_ids))
        ).all()
        for dish_id, rating in rows:
            buckets[dish_id].append(rating)
    return {dish_id: summarize(ratings) for dish_id, ratings in buckets.items()}


def average_ratings(db: Session, column, ids: Iterable[int]) -> dict[int, tuple[float, int]]:
    """Grouped (average, count) keyed by `column` (Review.rest_id or Review.dish_id)."""
    ids = list(set(ids))
    if not ids:
        return {}
    rows = db.execute(
        select(column, func.avg(Review.rating), func.count(Review.id))
        .where(column.in_(ids))
        .group_by(column)
    ).all()
    return {key: (round(float(avg or 0), 1), int(count)) for key, avg, count in rows}


def rating_for(averages: dict[int, tuple[float, int]], key: int) -> tuple[float, int]:
    return averages.get(key, (0.0, 0))


def chef_reviews(
    db: Session, chef_id: int, params: PageParams, rating: Optional[int] = None
) -> Page:
    """Paginated reviews for a chef, newest first, with the chef's histogram attached."""
    stmt = (
        select(Review)
        .options(selectinload(Review.user), selectinload(Review.dish))
        .where(Review.rest_id == chef_id)
    )
    if rating is not None:
        stmt = stmt.where(Review.rating == rating)
    page = paginate(db, stmt.order_by(Review.created_at.desc(), Review.id.desc()), params)
    page.extra["summary"] = chef_rating_summary(db, chef_id).to_dict()
    return page

from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal

from .db.repository import ReviewRepository
from .schemas import RatingSummary, Review, utcnow

_ONE_DECIMAL = Decimal("0.1")


def blend_rating(base_rating: float, base_count: int, ratings: list[int]) -> tuple[float, int]:
    """Blend a seeded (rating, count) baseline with submitted review scores.

    avg = (base_rating * base_count + sum(ratings)) / (base_count + len(ratings)),
    rounded half-up to one decimal. With no baseline count and no reviews the
    seeded rating is returned as-is with a count of zero.
    """
    count = base_count + len(ratings)
    if count == 0:
        return base_rating, 0
    total = Decimal(str(base_rating)) * base_count + sum(ratings)
    average = (total / count).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)
    return float(average), count


class RatingAggregator:
    def __init__(self, reviews: ReviewRepository) -> None:
        self.reviews = reviews

    def submit_review(
        self,
        *,
        item_id: str,
        user_id: str,
        rating: int,
        comment: str = "",
        user_name: str = "Guest",
    ) -> Review:
        review = Review(
            id=f"rev_{uuid.uuid4().hex[:12]}",
            item_id=item_id,
            user_id=user_id,
            user_name=user_name,
            rating=rating,
            comment=comment,
            date=utcnow(),
        )
        return self.reviews.add(review)

    def summary(self, item_id: str, base_rating: float, base_count: int = 0) -> RatingSummary:
        ratings = [review.rating for review in self.reviews.list_by_item(item_id)]
        rating, count = blend_rating(base_rating, base_count, ratings)
        return RatingSummary(item_id=item_id, rating=rating, count=count)

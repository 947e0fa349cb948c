"""
Review aggregation for doctor ratings.
"""

from typing import Any, Dict, List

from ..ports.document_store import DocumentStore, where

REVIEWS = "reviews"
DOCTORS = "doctors"


def review_stats(reviews: List[Dict[str, Any]]) -> Dict[str, Any]:
    ratings = [review.get("rating") or 0 for review in reviews]
    return {
        "totalReviews": len(ratings),
        "averageRating": round(sum(ratings) / len(ratings), 2) if ratings else 0,
        "ratingDistribution": {str(star): ratings.count(star) for star in (5, 4, 3, 2, 1)},
    }


async def refresh_doctor_rating(store: DocumentStore, doctor_id: str) -> Dict[str, Any]:
    """Recompute the doctor's rating from every review and store it on the profile."""
    reviews = await store.query(REVIEWS, [where("doctorId", "==", doctor_id)])
    stats = review_stats(reviews)
    await store.update(
        DOCTORS,
        doctor_id,
        {"rating": stats["averageRating"], "reviewCount": stats["totalReviews"]},
    )
    return stats

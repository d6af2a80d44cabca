"""
Review lifecycle: create, edit and delete reviews of rated entities.

Each operation writes the Review row and the matching aggregate delta in
the same transaction through the aggregation engine, so a review never
lands without its rating being counted.
"""

from flask import current_app

from bachelorbuddy import db
from bachelorbuddy.errors import InvalidRange, ValidationError
from bachelorbuddy.models import Review
from bachelorbuddy.services.aggregation import aggregation_engine
from bachelorbuddy.store import entity_store, RATED_ENTITY_TYPES


def validate_rating(rating):
    """Ratings are whole stars from 1 to 5."""
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRange(f"Rating must be an integer between 1 and 5, got {rating!r}")
    if rating < 1 or rating > 5:
        raise InvalidRange(f"Rating must be between 1 and 5, got {rating}")
    return rating


def submit_review(author_id, entity_type, entity_id, rating, content=None, images=None,
                  engine=None):
    """Create a review and count it. Returns the new Review."""
    engine = engine or aggregation_engine
    if entity_type not in RATED_ENTITY_TYPES:
        raise ValidationError(f"Reviews can only target {', '.join(RATED_ENTITY_TYPES)}")
    validate_rating(rating)

    def stage():
        review = Review(
            author_id=author_id,
            entity_type=entity_type,
            entity_id=entity_id,
            rating=rating,
            content=content,
            images=list(images or []),
        )
        entity_store.put('review', review, commit=False)
        return review, rating, 1

    review, _ = engine.run_review_transaction(entity_type, entity_id, stage)
    current_app.logger.info(f"Review {review.id} submitted for {entity_type} {entity_id}")
    return review


def edit_review(review_id, rating=None, content=None, images=None, engine=None):
    """
    Edit a review's rating, text or images.

    A rating change removes the old rating and applies the new one in the
    same transaction (net delta new - old, count unchanged).
    """
    engine = engine or aggregation_engine
    if rating is not None:
        validate_rating(rating)

    review = entity_store.get('review', review_id)
    entity_type, entity_id = review.entity_type, review.entity_id

    def stage():
        current = entity_store.get('review', review_id, fresh=True)
        old_rating = current.rating
        if rating is not None:
            current.rating = rating
        if content is not None:
            current.content = content
        if images is not None:
            current.images = list(images)
        entity_store.put('review', current, commit=False)
        return current, current.rating - old_rating, 0

    review, _ = engine.run_review_transaction(entity_type, entity_id, stage)
    current_app.logger.info(f"Review {review.id} edited")
    return review


def delete_review(review_id, engine=None):
    """Delete a review and remove its rating from the aggregate."""
    engine = engine or aggregation_engine
    review = entity_store.get('review', review_id)
    entity_type, entity_id = review.entity_type, review.entity_id

    def stage():
        current = entity_store.get('review', review_id, fresh=True)
        old_rating = current.rating
        db.session.delete(current)
        db.session.flush()
        return None, -old_rating, -1

    engine.run_review_transaction(entity_type, entity_id, stage)
    current_app.logger.info(f"Review {review_id} deleted from {entity_type} {entity_id}")

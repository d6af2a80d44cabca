"""
Rating aggregation for PG listings and local vendors.

Keeps the denormalized ``average_rating`` / ``review_count`` on a rated
entity equal to the mean of its surviving reviews:

- Every review lifecycle event becomes one (rating_delta, count_delta)
- Each delta is applied in a single transaction scoped to the target row
- Writes are compare-and-swap on the row's version; a lost race re-reads
  and retries, up to AGGREGATION_MAX_ATTEMPTS, then AggregationConflict

The raw integer ``rating_sum`` is stored so the average is always exact
before rounding (2 decimals, half-up).
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from flask import current_app
from sqlalchemy import func

from bachelorbuddy import db
from bachelorbuddy.errors import AggregationConflict, VersionConflict, ValidationError
from bachelorbuddy.models import Review
from bachelorbuddy.store import entity_store, RATED_ENTITY_TYPES


TWO_PLACES = Decimal('0.01')


def compute_average(rating_sum: int, review_count: int) -> Decimal:
    """Mean rating rounded half-up to 2 decimals, 0 when there are no reviews."""
    if review_count <= 0:
        return Decimal('0.00')
    return (Decimal(rating_sum) / Decimal(review_count)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class AggregationEngine:
    """Applies review deltas to rated entities."""

    def __init__(self, store=None, max_attempts: int = None):
        self.store = store or entity_store
        self._max_attempts = max_attempts

    @property
    def max_attempts(self) -> int:
        if self._max_attempts is not None:
            return self._max_attempts
        return current_app.config.get('AGGREGATION_MAX_ATTEMPTS', 5)

    def apply_review_delta(self, entity_type: str, entity_id: str,
                           rating_delta: int, count_delta: int):
        """
        Apply one review lifecycle delta to a rated entity.

        Args:
            entity_type: 'pg_listing' or 'local_vendor'
            entity_id: Target entity id
            rating_delta: Change to the rating sum (+rating on create)
            count_delta: Change to the review count (+1 on create)

        Returns:
            The updated rated entity

        Raises:
            NotFound: Target entity does not exist
            AggregationConflict: Retry budget exhausted
        """
        _, target = self.run_review_transaction(
            entity_type, entity_id, lambda: (None, rating_delta, count_delta)
        )
        return target

    def run_review_transaction(self, entity_type: str, entity_id: str, stage):
        """
        Run ``stage`` and its aggregate delta as one transaction, with retries.

        ``stage`` is called inside the transaction on every attempt. It makes
        its own row changes (insert/update/delete a Review) without
        committing and returns (result, rating_delta, count_delta).

        Returns:
            (result of the last stage call, updated rated entity)
        """
        if entity_type not in RATED_ENTITY_TYPES:
            raise ValidationError(f"{entity_type} does not carry ratings")

        for attempt in range(1, self.max_attempts + 1):
            target = self.store.get(entity_type, entity_id, fresh=True)
            expected_version = target.version_id

            try:
                result, rating_delta, count_delta = stage()
            except Exception:
                db.session.rollback()
                raise

            self._apply(target, rating_delta, count_delta)

            try:
                self.store.put(entity_type, target, expected_version=expected_version)
            except VersionConflict as e:
                current_app.logger.warning(
                    f"Aggregation conflict on {entity_type} {entity_id} "
                    f"(attempt {attempt}/{self.max_attempts}): {e}"
                )
                continue

            current_app.logger.info(
                f"Applied review delta ({rating_delta:+d}, {count_delta:+d}) to "
                f"{entity_type} {entity_id}: avg={target.average_rating} count={target.review_count}"
            )
            return result, target

        current_app.logger.error(
            f"Aggregation retry budget exhausted for {entity_type} {entity_id}"
        )
        raise AggregationConflict(
            f"Could not update rating for {entity_type} {entity_id} "
            f"after {self.max_attempts} attempts"
        )

    def recompute(self, entity_type: str, entity_id: str):
        """
        Rebuild the aggregate from the review table.

        Used to audit or repair the materialized rating after manual data
        fixes. Goes through the same versioned write as deltas.
        """
        def stage():
            target = self.store.get(entity_type, entity_id)
            total, count = db.session.query(
                func.coalesce(func.sum(Review.rating), 0),
                func.count(Review.id),
            ).filter(
                Review.entity_type == entity_type,
                Review.entity_id == entity_id,
            ).one()
            return None, int(total) - (target.rating_sum or 0), int(count) - (target.review_count or 0)

        _, target = self.run_review_transaction(entity_type, entity_id, stage)
        return target

    def _apply(self, target, rating_delta: int, count_delta: int):
        new_count = (target.review_count or 0) + count_delta
        new_sum = (target.rating_sum or 0) + rating_delta

        if new_count < 0:
            current_app.logger.error(
                f"Invariant violation: review_count for {target!r} would be {new_count}; clamping to 0"
            )
            new_count = 0
            new_sum = 0
        elif new_sum < 0:
            current_app.logger.error(
                f"Invariant violation: rating_sum for {target!r} would be {new_sum}; clamping to 0"
            )
            new_sum = 0

        if new_count == 0:
            new_sum = 0

        target.review_count = new_count
        # Always touch the row so every review event goes through the version check
        target.updated_at = datetime.utcnow()
        target.rating_sum = new_sum
        target.average_rating = compute_average(new_sum, new_count)


aggregation_engine = AggregationEngine()

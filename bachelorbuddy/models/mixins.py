"""Shared column helpers for BachelorBuddy models."""

import uuid
from decimal import Decimal
from bachelorbuddy import db


def new_id():
    """Opaque identifier for a new row."""
    return str(uuid.uuid4())


def isoformat(value):
    return value.isoformat() if value else None


class RatedEntityMixin:
    """Derived review aggregate owned by PG listings and local vendors.

    Only the aggregation engine writes these columns. ``rating_sum`` keeps the
    raw integer total so the average never drifts; ``average_rating`` is the
    materialized, 2-decimal view of it. Models using the mixin also declare
    a ``version_id`` column wired as the mapper's ``version_id_col``.
    """

    DERIVED_FIELDS = ('average_rating', 'review_count', 'rating_sum')

    rating_sum = db.Column(db.Integer, nullable=False, default=0)
    review_count = db.Column(db.Integer, nullable=False, default=0)
    average_rating = db.Column(db.Numeric(3, 2), nullable=False, default=Decimal('0.00'))

    def rating_fields(self):
        return {
            'average_rating': float(self.average_rating or 0),
            'review_count': self.review_count or 0,
        }

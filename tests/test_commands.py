"""
Tests for the flask maintenance commands.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from bachelorbuddy import db
from bachelorbuddy.models import ChatMessage, PGListing
from bachelorbuddy.services import reviews
from bachelorbuddy.services.messaging import messaging_sequencer


def test_recompute_ratings_command(app, listing, students):
    reviews.submit_review(students[0].id, 'pg_listing', listing.id, 4)
    broken = db.session.get(PGListing, listing.id)
    broken.review_count = 0
    broken.rating_sum = 0
    broken.average_rating = Decimal('0.00')
    db.session.commit()

    result = app.test_cli_runner().invoke(args=['recompute-ratings', '--entity-type', 'pg_listing'])

    assert result.exit_code == 0
    assert 'Recomputed ratings for 1 entities' in result.output
    repaired = db.session.get(PGListing, listing.id, populate_existing=True)
    assert repaired.review_count == 1
    assert repaired.average_rating == Decimal('4.00')


def test_purge_idempotency_tokens_command(app, room, students):
    sent = messaging_sequencer.append_message(room.id, students[0].id, 'hi', idempotency_token='t')
    message = db.session.get(ChatMessage, sent.message.id)
    message.created_at = datetime.utcnow() - timedelta(days=3)
    db.session.commit()

    result = app.test_cli_runner().invoke(args=['purge-idempotency-tokens'])

    assert result.exit_code == 0
    assert 'Released 1 idempotency tokens' in result.output

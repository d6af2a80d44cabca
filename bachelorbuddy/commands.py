"""
Maintenance commands, run via cron or by hand:

    flask recompute-ratings [--entity-type pg_listing] [--entity-id ID]
    flask purge-idempotency-tokens
"""

import click

from bachelorbuddy.errors import ValidationError
from bachelorbuddy.services.aggregation import aggregation_engine
from bachelorbuddy.services.messaging import messaging_sequencer
from bachelorbuddy.store import entity_store, RATED_ENTITY_TYPES


def recompute_ratings(entity_type=None, entity_id=None):
    """Rebuild rating aggregates from the review table. Returns rows checked."""
    if entity_id and not entity_type:
        raise ValidationError("--entity-id needs --entity-type")
    types = [entity_type] if entity_type else list(RATED_ENTITY_TYPES)
    checked = 0
    for current_type in types:
        if entity_id:
            targets = [entity_store.get(current_type, entity_id)]
        else:
            targets = entity_store.query(current_type, order_by='id')
        for target in [t.id for t in targets]:
            aggregation_engine.recompute(current_type, target)
            checked += 1
    return checked


def register_commands(app):
    @app.cli.command('recompute-ratings')
    @click.option('--entity-type', type=click.Choice(RATED_ENTITY_TYPES), default=None)
    @click.option('--entity-id', default=None)
    def recompute_ratings_command(entity_type, entity_id):
        """Rebuild average_rating / review_count from reviews."""
        checked = recompute_ratings(entity_type, entity_id)
        click.echo(f"Recomputed ratings for {checked} entities")

    @app.cli.command('purge-idempotency-tokens')
    def purge_idempotency_tokens_command():
        """Release chat idempotency tokens past the retention window."""
        released = messaging_sequencer.purge_expired_tokens()
        click.echo(f"Released {released} idempotency tokens")

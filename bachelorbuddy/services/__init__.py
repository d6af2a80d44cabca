# Business logic services
from bachelorbuddy.services.aggregation import aggregation_engine
from bachelorbuddy.services.messaging import messaging_sequencer
from bachelorbuddy.services.matching import rank_candidates
from bachelorbuddy.services.gateway import reputation_gateway

__all__ = [
    'aggregation_engine',
    'messaging_sequencer',
    'rank_candidates',
    'reputation_gateway',
]

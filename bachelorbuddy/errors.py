"""
Error taxonomy shared by the store, the engines and the API layer.

Every error carries the HTTP status the API blueprint answers with, so
routes never translate exceptions by hand.
"""


class ReputationError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    @property
    def code(self):
        return self.__class__.__name__

    def to_dict(self):
        return {
            'success': False,
            'error': self.message,
            'code': self.code,
        }


class NotFound(ReputationError):
    """Referenced entity does not exist."""
    status_code = 404

    def __init__(self, entity_type, entity_id):
        super().__init__(f"{entity_type} {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class VersionConflict(ReputationError):
    """Row changed since it was read."""
    status_code = 409


class AggregationConflict(ReputationError):
    """Rating aggregate could not be updated within the retry budget."""
    status_code = 409


class RoomArchived(ReputationError):
    """Chat room is archived and read-only."""
    status_code = 409


class DuplicateSuppressed(ReputationError):
    """Idempotency token replay; the original message stands."""

    def __init__(self, original):
        super().__init__(f"duplicate of message {original.id}")
        self.original = original


class ValidationError(ReputationError):
    """Request data is invalid."""
    status_code = 400


class InvalidRange(ValidationError):
    """Value outside its allowed range."""


class InvalidPreference(ValidationError):
    """Preference value is not a boolean, string, number or null."""


class Unauthorized(ReputationError):
    """Caller is not allowed to act for this identity."""
    status_code = 403


class MissingCaller(ReputationError):
    """Caller identity header missing."""
    status_code = 401

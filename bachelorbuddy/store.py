"""
Entity store: keyed access to every BachelorBuddy row type.

Wraps the Flask-SQLAlchemy session behind get/put/query/delete keyed by an
entity type name, so the engines never touch model classes directly.
Versioned rows (rated entities) support compare-and-swap writes.
"""

from flask import current_app
from sqlalchemy import inspect
from sqlalchemy.orm.exc import StaleDataError

from bachelorbuddy import db
from bachelorbuddy.errors import NotFound, VersionConflict, ValidationError
from bachelorbuddy.models import (
    Profile, PGListing, LocalVendor, RoommateProfile, Review,
    ChatRoom, ChatMessage, CommunityPost, PostComment,
)


ENTITY_TYPES = {
    'profile': Profile,
    'pg_listing': PGListing,
    'local_vendor': LocalVendor,
    'roommate_profile': RoommateProfile,
    'review': Review,
    'chat_room': ChatRoom,
    'chat_message': ChatMessage,
    'community_post': CommunityPost,
    'post_comment': PostComment,
}

# Entities carrying average_rating / review_count
RATED_ENTITY_TYPES = ('pg_listing', 'local_vendor')


def model_for(entity_type):
    model = ENTITY_TYPES.get(entity_type)
    if model is None:
        raise ValidationError(f"Unknown entity type: {entity_type}")
    return model


class EntityStore:
    """Keyed storage over the SQLAlchemy session."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def get(self, entity_type, entity_id, fresh=False):
        """
        Load one entity by id.

        Args:
            entity_type: Key from ENTITY_TYPES (e.g. 'pg_listing')
            entity_id: Entity identifier
            fresh: Re-read the row from the database instead of trusting
                the identity map

        Raises:
            NotFound: No such entity (or unknown type)
        """
        model = ENTITY_TYPES.get(entity_type)
        if model is None or entity_id is None:
            raise NotFound(entity_type, entity_id)

        entity = self.session.get(model, entity_id, populate_existing=fresh)
        if entity is None:
            raise NotFound(entity_type, entity_id)
        return entity

    def put(self, entity_type, entity, expected_version=None, commit=True):
        """
        Add or update an entity.

        Args:
            entity_type: Key from ENTITY_TYPES
            entity: Model instance
            expected_version: Version the caller read; the write only lands
                if the row still carries it
            commit: Commit the session (False to stage inside a larger
                transaction)

        Returns:
            The stored entity

        Raises:
            VersionConflict: Row changed since expected_version was read
        """
        model = model_for(entity_type)
        if not isinstance(entity, model):
            raise ValidationError(f"Expected {model.__name__}, got {type(entity).__name__}")

        if expected_version is not None and entity.version_id != expected_version:
            self.session.rollback()
            raise VersionConflict(
                f"{entity_type} {entity.id} is at version {entity.version_id}, "
                f"expected {expected_version}"
            )

        self.session.add(entity)
        try:
            if commit:
                self.session.commit()
            else:
                self.session.flush()
        except StaleDataError:
            self.session.rollback()
            raise VersionConflict(f"{entity_type} {entity.id} was modified concurrently")
        return entity

    def delete(self, entity_type, entity, commit=True):
        model_for(entity_type)
        self.session.delete(entity)
        if commit:
            self.session.commit()

    def query(self, entity_type, filters=None, order_by=None, limit=None):
        """
        Equality query over mapped columns.

        Args:
            entity_type: Key from ENTITY_TYPES
            filters: Dict of column -> value
            order_by: Column name, prefixed with '-' for descending
            limit: Max rows

        Returns:
            List of entities
        """
        model = model_for(entity_type)
        columns = inspect(model).columns
        query = model.query

        for key, value in (filters or {}).items():
            if key not in columns:
                raise ValidationError(f"Cannot filter {entity_type} by {key}")
            query = query.filter(getattr(model, key) == value)

        if order_by:
            name = order_by.lstrip('-')
            if name not in columns:
                raise ValidationError(f"Cannot order {entity_type} by {name}")
            column = getattr(model, name)
            query = query.order_by(column.desc() if order_by.startswith('-') else column.asc())

        if limit is not None:
            query = query.limit(limit)

        results = query.all()
        current_app.logger.debug(f"Store query {entity_type} {filters} -> {len(results)} rows")
        return results


entity_store = EntityStore()

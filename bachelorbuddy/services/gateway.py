"""
Reputation gateway: the one entry point for API requests.

Shapes request payloads into model rows and engine calls and checks that
the caller is the author / sender / owner they claim to be. Business rules
live in the engines; this layer only validates input and identity.
"""

from datetime import date, datetime, timezone
from flask import current_app

from bachelorbuddy.errors import InvalidRange, Unauthorized, ValidationError
from bachelorbuddy.models import (
    Profile, PGListing, LocalVendor, RoommateProfile, ChatRoom, CommunityPost, PostComment,
)
from bachelorbuddy.models.mixins import RatedEntityMixin
from bachelorbuddy.models.profile import USER_ROLES, GENDERS
from bachelorbuddy.models.vendor import VENDOR_TYPES
from bachelorbuddy.services import reviews
from bachelorbuddy.services.matching import (
    CandidateProfile, MatchWeights, parse_preferences, rank_candidates,
)
from bachelorbuddy.services.messaging import messaging_sequencer
from bachelorbuddy.store import entity_store


PROFILE_FIELDS = ('username', 'full_name', 'avatar_url', 'role', 'gender', 'college',
                  'batch_year', 'phone', 'email')
LISTING_FIELDS = ('title', 'description', 'address', 'location', 'monthly_rent',
                  'security_deposit', 'is_shared', 'max_occupancy', 'gender_preference',
                  'amenities', 'rules', 'images', 'contact_phone', 'contact_email', 'is_available')
VENDOR_FIELDS = ('name', 'type', 'description', 'address', 'location', 'contact_phone',
                 'contact_email', 'operating_hours', 'services', 'price_range', 'images')
ROOMMATE_FIELDS = ('bio', 'preferred_locations', 'lifestyle_tags', 'is_smoking_ok',
                   'is_pets_ok', 'duration_months', 'is_active')
POST_FIELDS = ('title', 'content', 'category', 'tags', 'college', 'batch_year')


# ============== REQUEST SHAPING ==============

def _require(payload, *fields):
    missing = [f for f in fields if payload.get(f) in (None, '')]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def _require_if_present(payload, *fields):
    """PATCH payloads may omit a required field but never blank it."""
    _require(payload, *[f for f in fields if f in payload])


def _boolean(payload, *fields):
    for f in fields:
        if f in payload and not isinstance(payload[f], bool):
            raise ValidationError(f"{f} must be true or false")


def _check_identity(caller_id, owner_id, action):
    if caller_id is None or caller_id != owner_id:
        raise Unauthorized(f"Caller may not {action} on behalf of {owner_id}")


def _reject_derived(payload):
    derived = [f for f in RatedEntityMixin.DERIVED_FIELDS if f in payload]
    if derived:
        raise InvalidRange(f"Derived field(s) are read-only: {', '.join(derived)}")


def _non_negative(payload, *fields):
    for f in fields:
        value = payload.get(f)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise InvalidRange(f"{f} must be a non-negative number")


def _location(payload):
    location = payload.get('location')
    if location is None:
        return
    if not isinstance(location, dict) or not {'latitude', 'longitude'} <= set(location):
        raise ValidationError("location must be an object with latitude and longitude")


def _price_range(payload):
    price_range = payload.get('price_range')
    if price_range is None:
        return
    if not isinstance(price_range, dict):
        raise ValidationError("price_range must be an object with min and max")
    low, high = price_range.get('min'), price_range.get('max')
    _non_negative(price_range, 'min', 'max')
    if low is None or high is None or low > high:
        raise InvalidRange(f"price_range min must not exceed max, got [{low}, {high}]")


def _budget(payload):
    budget = payload.get('budget_range')
    if not isinstance(budget, dict):
        raise ValidationError("budget_range must be an object with min and max")
    low, high = budget.get('min'), budget.get('max')
    for value in (low, high):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidRange("budget_range min and max must be integers")
    if low < 0 or high < 0:
        raise InvalidRange(f"budget_range must be non-negative, got [{low}, {high}]")
    if low > high:
        raise InvalidRange(f"budget_range min {low} exceeds max {high}")
    return low, high


def _choice(payload, field, choices):
    value = payload.get(field)
    if value is not None and value not in choices:
        raise ValidationError(f"{field} must be one of {', '.join(choices)}")


def _parse_timestamp(value):
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_date(value):
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date: {value}")


def _string_list(payload, *fields):
    for f in fields:
        value = payload.get(f)
        if value is not None and (not isinstance(value, list)
                                  or not all(isinstance(v, str) for v in value)):
            raise ValidationError(f"{f} must be a list of strings")


def _copy_fields(entity, payload, fields):
    for f in fields:
        if f in payload:
            setattr(entity, f, payload[f])


class ReputationGateway:
    """Facade over the store, aggregation, matching and messaging."""

    def __init__(self, store=None, sequencer=None):
        self.store = store or entity_store
        self.sequencer = sequencer or messaging_sequencer

    def get_entity(self, entity_type, entity_id):
        return self.store.get(entity_type, entity_id)

    # ============== PROFILES ==============

    def create_profile(self, caller_id, payload):
        _require(payload, 'id')
        _check_identity(caller_id, payload['id'], 'create a profile')
        _choice(payload, 'role', USER_ROLES)
        _choice(payload, 'gender', GENDERS)
        if self.store.query('profile', {'id': payload['id']}):
            raise ValidationError(f"Profile {payload['id']} already exists")

        profile = Profile(id=payload['id'])
        _copy_fields(profile, payload, PROFILE_FIELDS)
        return self.store.put('profile', profile)

    # ============== LISTINGS & VENDORS ==============

    def create_listing(self, caller_id, payload):
        _reject_derived(payload)
        _require(payload, 'owner_id', 'title', 'address', 'monthly_rent')
        _check_identity(caller_id, payload['owner_id'], 'list a PG')
        self.store.get('profile', payload['owner_id'])
        self._validate_listing(payload)

        listing = PGListing(owner_id=payload['owner_id'])
        _copy_fields(listing, payload, LISTING_FIELDS)
        return self.store.put('pg_listing', listing)

    def update_listing(self, caller_id, listing_id, payload):
        _reject_derived(payload)
        listing = self.store.get('pg_listing', listing_id)
        _check_identity(caller_id, listing.owner_id, 'edit this listing')
        _require_if_present(payload, 'title', 'address', 'monthly_rent')
        self._validate_listing(payload)

        _copy_fields(listing, payload, LISTING_FIELDS)
        return self.store.put('pg_listing', listing)

    def _validate_listing(self, payload):
        _non_negative(payload, 'monthly_rent', 'security_deposit', 'max_occupancy')
        _boolean(payload, 'is_shared', 'is_available')
        _choice(payload, 'gender_preference', GENDERS)
        _location(payload)

    def create_vendor(self, caller_id, payload):
        _reject_derived(payload)
        _require(payload, 'owner_id', 'name', 'address')
        _check_identity(caller_id, payload['owner_id'], 'register a vendor')
        self.store.get('profile', payload['owner_id'])
        self._validate_vendor(payload)

        vendor = LocalVendor(owner_id=payload['owner_id'])
        _copy_fields(vendor, payload, VENDOR_FIELDS)
        return self.store.put('local_vendor', vendor)

    def update_vendor(self, caller_id, vendor_id, payload):
        _reject_derived(payload)
        vendor = self.store.get('local_vendor', vendor_id)
        _check_identity(caller_id, vendor.owner_id, 'edit this vendor')
        _require_if_present(payload, 'name', 'address')
        self._validate_vendor(payload)

        _copy_fields(vendor, payload, VENDOR_FIELDS)
        return self.store.put('local_vendor', vendor)

    def _validate_vendor(self, payload):
        _choice(payload, 'type', VENDOR_TYPES)
        _location(payload)
        _price_range(payload)

    # ============== REVIEWS ==============

    def submit_review(self, caller_id, payload):
        _require(payload, 'author_id', 'entity_type', 'entity_id', 'rating')
        _check_identity(caller_id, payload['author_id'], 'review')
        self.store.get('profile', payload['author_id'])
        return reviews.submit_review(
            author_id=payload['author_id'],
            entity_type=payload['entity_type'],
            entity_id=payload['entity_id'],
            rating=payload['rating'],
            content=payload.get('content'),
            images=payload.get('images'),
        )

    def edit_review(self, caller_id, review_id, payload):
        review = self.store.get('review', review_id)
        _check_identity(caller_id, review.author_id, 'edit this review')
        for immutable in ('entity_type', 'entity_id', 'author_id'):
            if immutable in payload and payload[immutable] != getattr(review, immutable):
                raise ValidationError(f"{immutable} cannot be changed")
        return reviews.edit_review(
            review_id,
            rating=payload.get('rating'),
            content=payload.get('content'),
            images=payload.get('images'),
        )

    def delete_review(self, caller_id, review_id):
        review = self.store.get('review', review_id)
        _check_identity(caller_id, review.author_id, 'delete this review')
        reviews.delete_review(review_id)

    def list_reviews(self, entity_type, entity_id):
        self.store.get(entity_type, entity_id)
        return self.store.query('review', {'entity_type': entity_type, 'entity_id': entity_id},
                                order_by='-created_at')

    # ============== ROOMMATES ==============

    def upsert_roommate_profile(self, caller_id, payload):
        """Create or replace the caller's roommate profile."""
        _require(payload, 'user_id', 'budget_range')
        _check_identity(caller_id, payload['user_id'], 'edit this roommate profile')
        self.store.get('profile', payload['user_id'])
        budget_min, budget_max = _budget(payload)
        parse_preferences(payload.get('preferences'))
        _string_list(payload, 'preferred_locations', 'lifestyle_tags')
        _non_negative(payload, 'duration_months')
        _boolean(payload, 'is_smoking_ok', 'is_pets_ok', 'is_active')

        existing = self.store.query('roommate_profile', {'user_id': payload['user_id']})
        profile = existing[0] if existing else RoommateProfile(user_id=payload['user_id'])
        profile.budget_min = budget_min
        profile.budget_max = budget_max
        if 'preferences' in payload:
            profile.preferences = dict(payload['preferences'] or {})
        if 'move_in_date' in payload:
            profile.move_in_date = _parse_date(payload['move_in_date'])
        _copy_fields(profile, payload, ROOMMATE_FIELDS)
        return self.store.put('roommate_profile', profile)

    def request_matches(self, caller_id, limit=None, min_score=0.0):
        """Rank active roommate profiles for the caller's own profile."""
        existing = self.store.query('roommate_profile', {'user_id': caller_id})
        if not existing:
            raise ValidationError("Create a roommate profile before requesting matches")
        seeker_row = existing[0]

        if limit is None:
            limit = current_app.config.get('MATCH_DEFAULT_LIMIT', 20)
        seeker = CandidateProfile.from_row(seeker_row)
        pool = [row.to_snapshot() for row in self.store.query('roommate_profile', {'is_active': True})]

        matches = rank_candidates(
            seeker, pool,
            limit=limit,
            weights=MatchWeights.from_config(current_app.config),
            min_score=min_score,
        )
        current_app.logger.info(
            f"Ranked {len(pool)} candidates for roommate profile {seeker.id}; returning {len(matches)}"
        )
        return matches

    # ============== CHAT ==============

    def create_room(self, caller_id, payload):
        if caller_id is None:
            raise Unauthorized("Caller identity required to create a room")
        metadata = payload.get('metadata') or {}
        if not isinstance(metadata, dict):
            raise ValidationError("metadata must be an object")
        room = ChatRoom(type=payload.get('type') or 'direct', meta=metadata)
        return self.store.put('chat_room', room)

    def archive_room(self, caller_id, room_id):
        if caller_id is None:
            raise Unauthorized("Caller identity required to archive a room")
        return self.sequencer.archive_room(room_id)

    def send_message(self, caller_id, room_id, payload):
        _require(payload, 'sender_id')
        _check_identity(caller_id, payload['sender_id'], 'send messages')
        self.store.get('profile', payload['sender_id'])
        if 'content' not in payload:
            raise ValidationError("Missing required field(s): content")
        return self.sequencer.append_message(
            room_id,
            sender_id=payload['sender_id'],
            content=payload['content'],
            metadata=payload.get('metadata'),
            idempotency_token=payload.get('idempotency_token'),
            client_created_at=_parse_timestamp(payload.get('created_at')),
        )

    def read_messages(self, room_id, after=0, limit=None):
        if after < 0:
            raise InvalidRange("after must be non-negative")
        if limit is not None and limit <= 0:
            raise InvalidRange("limit must be positive")
        return self.sequencer.read_messages(room_id, after=after, limit=limit)

    # ============== COMMUNITY ==============

    def create_post(self, caller_id, payload):
        _require(payload, 'author_id', 'title', 'content')
        _check_identity(caller_id, payload['author_id'], 'post')
        self.store.get('profile', payload['author_id'])

        post = CommunityPost(author_id=payload['author_id'])
        _copy_fields(post, payload, POST_FIELDS)
        return self.store.put('community_post', post)

    def create_comment(self, caller_id, post_id, payload):
        _require(payload, 'author_id', 'content')
        _check_identity(caller_id, payload['author_id'], 'comment')
        post = self.store.get('community_post', post_id)
        if post.is_archived:
            raise ValidationError(f"Post {post_id} is archived")

        parent_id = payload.get('parent_id')
        if parent_id:
            parent = self.store.get('post_comment', parent_id)
            if parent.post_id != post_id:
                raise ValidationError("Reply must belong to the same post")

        comment = PostComment(
            post_id=post_id,
            author_id=payload['author_id'],
            parent_id=parent_id,
            content=payload['content'],
        )
        return self.store.put('post_comment', comment)

    def list_comments(self, post_id):
        self.store.get('community_post', post_id)
        return self.store.query('post_comment', {'post_id': post_id}, order_by='created_at')


reputation_gateway = ReputationGateway()

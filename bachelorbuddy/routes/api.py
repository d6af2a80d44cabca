"""
API routes for the BachelorBuddy clients.

Includes:
- Profiles, PG listings and local vendors
- Reviews (submit / edit / delete) with live rating aggregates
- Roommate profile and compatibility matches
- Chat rooms and sequenced messages
- Community posts and comments

The caller's identity comes from the X-Caller-Id header, set by the auth
layer in front of this service.
"""

from functools import wraps
from flask import Blueprint, request, jsonify, g, current_app

from bachelorbuddy import db
from bachelorbuddy.errors import MissingCaller, ReputationError, ValidationError
from bachelorbuddy.services.gateway import reputation_gateway

api_bp = Blueprint('api', __name__, url_prefix='/api')

CALLER_HEADER = 'X-Caller-Id'


@api_bp.errorhandler(ReputationError)
def handle_reputation_error(error):
    """Translate domain errors to JSON responses."""
    db.session.rollback()
    if error.status_code >= 500:
        current_app.logger.error(f"{error.code}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


def caller_required(f):
    """Decorator to require a caller identity on the request."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        caller_id = request.headers.get(CALLER_HEADER, '').strip()
        if not caller_id:
            raise MissingCaller(f"{CALLER_HEADER} header is required")
        g.caller_id = caller_id
        return f(*args, **kwargs)
    return decorated_function


def get_payload():
    """JSON body of the request as a dict."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def int_arg(name, default=None):
    value = request.args.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


# ============== PROFILES ==============

@api_bp.route('/profiles', methods=['POST'])
@caller_required
def create_profile():
    profile = reputation_gateway.create_profile(g.caller_id, get_payload())
    return jsonify({'success': True, 'profile': profile.to_dict()}), 201


@api_bp.route('/profiles/<profile_id>')
@caller_required
def get_profile(profile_id):
    profile = reputation_gateway.get_entity('profile', profile_id)
    return jsonify({'success': True, 'profile': profile.to_dict()})


# ============== LISTINGS ==============

@api_bp.route('/listings', methods=['POST'])
@caller_required
def create_listing():
    listing = reputation_gateway.create_listing(g.caller_id, get_payload())
    return jsonify({'success': True, 'listing': listing.to_dict()}), 201


@api_bp.route('/listings/<listing_id>', methods=['PATCH'])
@caller_required
def update_listing(listing_id):
    listing = reputation_gateway.update_listing(g.caller_id, listing_id, get_payload())
    return jsonify({'success': True, 'listing': listing.to_dict()})


@api_bp.route('/listings/<listing_id>')
def get_listing(listing_id):
    listing = reputation_gateway.get_entity('pg_listing', listing_id)
    return jsonify({'success': True, 'listing': listing.to_dict()})


# ============== VENDORS ==============

@api_bp.route('/vendors', methods=['POST'])
@caller_required
def create_vendor():
    vendor = reputation_gateway.create_vendor(g.caller_id, get_payload())
    return jsonify({'success': True, 'vendor': vendor.to_dict()}), 201


@api_bp.route('/vendors/<vendor_id>', methods=['PATCH'])
@caller_required
def update_vendor(vendor_id):
    vendor = reputation_gateway.update_vendor(g.caller_id, vendor_id, get_payload())
    return jsonify({'success': True, 'vendor': vendor.to_dict()})


@api_bp.route('/vendors/<vendor_id>')
def get_vendor(vendor_id):
    vendor = reputation_gateway.get_entity('local_vendor', vendor_id)
    return jsonify({'success': True, 'vendor': vendor.to_dict()})


# ============== REVIEWS ==============

@api_bp.route('/reviews', methods=['POST'])
@caller_required
def submit_review():
    """
    Submit a review for a PG listing or local vendor.

    Body: author_id, entity_type ('pg_listing' | 'local_vendor'),
    entity_id, rating (1-5), content, images

    Returns:
        JSON with the review and the updated target aggregate
    """
    review = reputation_gateway.submit_review(g.caller_id, get_payload())
    target = reputation_gateway.get_entity(review.entity_type, review.entity_id)
    return jsonify({
        'success': True,
        'review': review.to_dict(),
        'target': target.to_dict(),
    }), 201


@api_bp.route('/reviews/<review_id>', methods=['PATCH'])
@caller_required
def edit_review(review_id):
    review = reputation_gateway.edit_review(g.caller_id, review_id, get_payload())
    target = reputation_gateway.get_entity(review.entity_type, review.entity_id)
    return jsonify({
        'success': True,
        'review': review.to_dict(),
        'target': target.to_dict(),
    })


@api_bp.route('/reviews/<review_id>', methods=['DELETE'])
@caller_required
def delete_review(review_id):
    reputation_gateway.delete_review(g.caller_id, review_id)
    return jsonify({'success': True})


@api_bp.route('/reviews')
def list_reviews():
    """List reviews for ?entity_type=&entity_id=, newest first."""
    entity_type = request.args.get('entity_type', '').strip()
    entity_id = request.args.get('entity_id', '').strip()
    if not entity_type or not entity_id:
        raise ValidationError("entity_type and entity_id are required")

    reviews = reputation_gateway.list_reviews(entity_type, entity_id)
    return jsonify({
        'success': True,
        'reviews': [r.to_dict() for r in reviews],
    })


# ============== ROOMMATES ==============

@api_bp.route('/roommate-profile', methods=['PUT'])
@caller_required
def upsert_roommate_profile():
    profile = reputation_gateway.upsert_roommate_profile(g.caller_id, get_payload())
    return jsonify({'success': True, 'roommate_profile': profile.to_dict()})


@api_bp.route('/roommate-profile/matches')
@caller_required
def roommate_matches():
    """
    Rank compatible roommates for the caller.

    Query params:
        limit: Max matches (default MATCH_DEFAULT_LIMIT)
        min_score: Drop matches below this score (0-1)
    """
    try:
        min_score = float(request.args.get('min_score', 0.0))
    except ValueError:
        raise ValidationError("min_score must be a number")

    matches = reputation_gateway.request_matches(
        g.caller_id,
        limit=int_arg('limit'),
        min_score=min_score,
    )
    return jsonify({
        'success': True,
        'matches': [m.to_dict() for m in matches],
    })


# ============== CHAT ==============

@api_bp.route('/rooms', methods=['POST'])
@caller_required
def create_room():
    room = reputation_gateway.create_room(g.caller_id, get_payload())
    return jsonify({'success': True, 'room': room.to_dict()}), 201


@api_bp.route('/rooms/<room_id>/archive', methods=['POST'])
@caller_required
def archive_room(room_id):
    room = reputation_gateway.archive_room(g.caller_id, room_id)
    return jsonify({'success': True, 'room': room.to_dict()})


@api_bp.route('/rooms/<room_id>/messages', methods=['POST'])
@caller_required
def send_message(room_id):
    """
    Append a message to a room.

    A retry with the same idempotency_token returns the original message
    with 'duplicate': true instead of creating a new one.
    """
    result = reputation_gateway.send_message(g.caller_id, room_id, get_payload())
    return jsonify({
        'success': True,
        'message': result.message.to_dict(),
        'duplicate': result.duplicate,
    }), 200 if result.duplicate else 201


@api_bp.route('/rooms/<room_id>/messages')
@caller_required
def read_messages(room_id):
    """Replay messages after ?after= (sequence position), oldest first."""
    messages = reputation_gateway.read_messages(
        room_id,
        after=int_arg('after', 0),
        limit=int_arg('limit'),
    )
    return jsonify({
        'success': True,
        'messages': [m.to_dict() for m in messages],
        'next_after': messages[-1].sequence if messages else int_arg('after', 0),
    })


# ============== COMMUNITY ==============

@api_bp.route('/posts', methods=['POST'])
@caller_required
def create_post():
    post = reputation_gateway.create_post(g.caller_id, get_payload())
    return jsonify({'success': True, 'post': post.to_dict()}), 201


@api_bp.route('/posts/<post_id>')
def get_post(post_id):
    post = reputation_gateway.get_entity('community_post', post_id)
    return jsonify({'success': True, 'post': post.to_dict()})


@api_bp.route('/posts/<post_id>/comments', methods=['POST'])
@caller_required
def create_comment(post_id):
    comment = reputation_gateway.create_comment(g.caller_id, post_id, get_payload())
    return jsonify({'success': True, 'comment': comment.to_dict()}), 201


@api_bp.route('/posts/<post_id>/comments')
def list_comments(post_id):
    comments = reputation_gateway.list_comments(post_id)
    return jsonify({
        'success': True,
        'comments': [c.to_dict() for c in comments],
    })

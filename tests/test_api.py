"""
Tests for the /api blueprint and its caller-identity preconditions.
"""

from bachelorbuddy import db
from bachelorbuddy.models import RoommateProfile


def create_review(client, caller, author_id, listing_id, rating):
    return client.post('/api/reviews', headers=caller(author_id), json={
        'author_id': author_id,
        'entity_type': 'pg_listing',
        'entity_id': listing_id,
        'rating': rating,
        'content': 'Decent food, strict curfew',
    })


# ============== PROFILES & LISTINGS ==============

def test_create_profile_requires_matching_caller(client, caller):
    response = client.post('/api/profiles', headers=caller('someone-else'),
                           json={'id': 'new-user', 'username': 'newbie'})
    assert response.status_code == 403
    assert response.get_json()['code'] == 'Unauthorized'

    response = client.post('/api/profiles', headers=caller('new-user'),
                           json={'id': 'new-user', 'username': 'newbie', 'role': 'student'})
    assert response.status_code == 201
    assert response.get_json()['profile']['username'] == 'newbie'


def test_missing_caller_header(client):
    response = client.post('/api/profiles', json={'id': 'x'})
    assert response.status_code == 401
    assert response.get_json()['code'] == 'MissingCaller'


def test_listing_wire_shape(client, caller, owner):
    response = client.post('/api/listings', headers=caller(owner.id), json={
        'owner_id': owner.id,
        'title': 'Green Nest PG',
        'address': '7 Lake View',
        'monthly_rent': 7000,
        'location': {'latitude': 12.9, 'longitude': 77.6},
        'amenities': {'wifi': True, 'ac': False},
        'rules': ['No smoking'],
    })
    assert response.status_code == 201
    listing = response.get_json()['listing']

    assert listing['average_rating'] == 0
    assert listing['review_count'] == 0
    assert listing['location'] == {'latitude': 12.9, 'longitude': 77.6}
    assert 'rating_sum' not in listing
    assert 'version_id' not in listing

    fetched = client.get(f"/api/listings/{listing['id']}").get_json()['listing']
    assert fetched['title'] == 'Green Nest PG'


def test_derived_fields_are_read_only(client, caller, owner, listing):
    response = client.post('/api/listings', headers=caller(owner.id), json={
        'owner_id': owner.id, 'title': 'Fake 5 stars', 'address': 'x',
        'monthly_rent': 100, 'average_rating': 5.0,
    })
    assert response.status_code == 400
    assert response.get_json()['code'] == 'InvalidRange'

    response = client.patch(f'/api/listings/{listing.id}', headers=caller(owner.id),
                            json={'review_count': 100})
    assert response.status_code == 400


def test_only_owner_updates_listing(client, caller, owner, listing, students):
    response = client.patch(f'/api/listings/{listing.id}', headers=caller(students[0].id),
                            json={'monthly_rent': 1})
    assert response.status_code == 403

    response = client.patch(f'/api/listings/{listing.id}', headers=caller(owner.id),
                            json={'monthly_rent': 7200, 'is_available': False})
    assert response.status_code == 200
    assert response.get_json()['listing']['monthly_rent'] == 7200


def test_patch_cannot_blank_required_fields(client, caller, owner, listing, vendor):
    response = client.patch(f'/api/listings/{listing.id}', headers=caller(owner.id),
                            json={'title': None})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'ValidationError'

    response = client.patch(f'/api/vendors/{vendor.id}', headers=caller(owner.id),
                            json={'address': ''})
    assert response.status_code == 400

    fetched = client.get(f'/api/listings/{listing.id}').get_json()['listing']
    assert fetched['title'] == 'Sunrise PG'


def test_listing_flags_must_be_boolean(client, caller, owner, listing):
    response = client.patch(f'/api/listings/{listing.id}', headers=caller(owner.id),
                            json={'is_available': 'no'})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'ValidationError'


def test_unknown_listing(client):
    response = client.get('/api/listings/nope')
    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'error': 'pg_listing nope not found', 'code': 'NotFound'}


# ============== REVIEWS ==============

def test_review_flow_updates_target(client, caller, listing, students):
    a, b = students[0].id, students[1].id

    first = create_review(client, caller, a, listing.id, 5)
    assert first.status_code == 201
    create_review(client, caller, b, listing.id, 3)

    target = client.get(f'/api/listings/{listing.id}').get_json()['listing']
    assert target['average_rating'] == 4.0
    assert target['review_count'] == 2

    review_id = first.get_json()['review']['id']
    response = client.delete(f'/api/reviews/{review_id}', headers=caller(a))
    assert response.status_code == 200

    target = client.get(f'/api/listings/{listing.id}').get_json()['listing']
    assert target['average_rating'] == 3.0
    assert target['review_count'] == 1


def test_review_author_must_be_caller(client, caller, listing, students):
    response = client.post('/api/reviews', headers=caller(students[1].id), json={
        'author_id': students[0].id, 'entity_type': 'pg_listing',
        'entity_id': listing.id, 'rating': 1,
    })
    assert response.status_code == 403


def test_only_author_edits_or_deletes_review(client, caller, listing, students):
    review_id = create_review(client, caller, students[0].id, listing.id, 4).get_json()['review']['id']

    assert client.patch(f'/api/reviews/{review_id}', headers=caller(students[1].id),
                        json={'rating': 1}).status_code == 403
    assert client.delete(f'/api/reviews/{review_id}', headers=caller(students[1].id)).status_code == 403

    response = client.patch(f'/api/reviews/{review_id}', headers=caller(students[0].id),
                            json={'rating': 2})
    assert response.status_code == 200
    assert response.get_json()['target']['average_rating'] == 2.0


def test_review_target_cannot_move(client, caller, listing, vendor, students):
    review_id = create_review(client, caller, students[0].id, listing.id, 4).get_json()['review']['id']
    response = client.patch(f'/api/reviews/{review_id}', headers=caller(students[0].id),
                            json={'entity_type': 'local_vendor', 'entity_id': vendor.id})
    assert response.status_code == 400


def test_out_of_range_rating(client, caller, listing, students):
    response = create_review(client, caller, students[0].id, listing.id, 9)
    assert response.status_code == 400
    assert response.get_json()['code'] == 'InvalidRange'


def test_list_reviews(client, caller, listing, students):
    create_review(client, caller, students[0].id, listing.id, 4)
    create_review(client, caller, students[1].id, listing.id, 2)

    response = client.get(f'/api/reviews?entity_type=pg_listing&entity_id={listing.id}')
    assert response.status_code == 200
    assert sorted(r['rating'] for r in response.get_json()['reviews']) == [2, 4]


# ============== ROOMMATES ==============

def put_roommate(client, caller, user_id, **fields):
    payload = {'user_id': user_id, 'budget_range': {'min': 5000, 'max': 8000}}
    payload.update(fields)
    return client.put('/api/roommate-profile', headers=caller(user_id), json=payload)


def test_roommate_profile_validation(client, caller, students):
    response = put_roommate(client, caller, students[0].id, budget_range={'min': 9000, 'max': 5000})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'InvalidRange'

    response = put_roommate(client, caller, students[0].id, preferences={'pets': {'cat': True}})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'InvalidPreference'


def test_roommate_flags_must_be_boolean(client, caller, students):
    for flag in ('is_active', 'is_smoking_ok', 'is_pets_ok'):
        response = put_roommate(client, caller, students[0].id, **{flag: 'no'})
        assert response.status_code == 400
        assert response.get_json()['code'] == 'ValidationError'
    assert RoommateProfile.query.count() == 0


def test_roommate_budget_is_whole_units(client, caller, students):
    response = put_roommate(client, caller, students[0].id,
                            budget_range={'min': 5000.5, 'max': 8000})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'InvalidRange'


def test_roommate_profile_is_one_per_user(client, caller, students):
    put_roommate(client, caller, students[0].id, bio='first')
    response = put_roommate(client, caller, students[0].id, bio='second',
                            budget_range={'min': 6000, 'max': 9000})

    assert response.status_code == 200
    body = response.get_json()['roommate_profile']
    assert body['bio'] == 'second'
    assert body['budget_range'] == {'min': 6000, 'max': 9000}
    assert RoommateProfile.query.count() == 1


def test_matches_for_caller(client, caller, students):
    a, b, c = (s.id for s in students)
    put_roommate(client, caller, a, preferred_locations=['BTM'], lifestyle_tags=['quiet'],
                 preferences={'smoking': False})
    put_roommate(client, caller, b, budget_range={'min': 7000, 'max': 10000},
                 preferred_locations=['btm'], lifestyle_tags=['quiet'], preferences={'smoking': False})
    put_roommate(client, caller, c, is_active=False)

    response = client.get('/api/roommate-profile/matches', headers=caller(a))
    assert response.status_code == 200
    matches = response.get_json()['matches']

    b_profile = RoommateProfile.query.filter_by(user_id=b).one()
    assert [m['candidate_id'] for m in matches] == [b_profile.id]
    assert matches[0]['breakdown']['budget'] == 0.2
    assert matches[0]['score'] == 0.76


def test_matches_need_a_profile(client, caller, students):
    response = client.get('/api/roommate-profile/matches', headers=caller(students[0].id))
    assert response.status_code == 400


def test_deactivated_profile_leaves_pool(client, caller, students):
    a, b = students[0].id, students[1].id
    put_roommate(client, caller, a)
    put_roommate(client, caller, b)
    put_roommate(client, caller, b, is_active=False)

    matches = client.get('/api/roommate-profile/matches', headers=caller(a)).get_json()['matches']
    assert matches == []
    assert db.session.get(RoommateProfile, RoommateProfile.query.filter_by(user_id=b).one().id) is not None


# ============== CHAT ==============

def test_send_message_and_replay(client, caller, room, students):
    a = students[0].id
    first = client.post(f'/api/rooms/{room.id}/messages', headers=caller(a), json={
        'sender_id': a, 'content': 'who has the wifi password?', 'idempotency_token': 'k1',
        'created_at': '2024-06-01T10:00:00Z',
    })
    assert first.status_code == 201
    assert first.get_json()['message']['sequence'] == 1
    assert first.get_json()['duplicate'] is False

    retry = client.post(f'/api/rooms/{room.id}/messages', headers=caller(a), json={
        'sender_id': a, 'content': 'who has the wifi password?', 'idempotency_token': 'k1',
    })
    assert retry.status_code == 200
    assert retry.get_json()['duplicate'] is True
    assert retry.get_json()['message']['id'] == first.get_json()['message']['id']

    listing = client.get(f'/api/rooms/{room.id}/messages', headers=caller(a)).get_json()
    assert [m['sequence'] for m in listing['messages']] == [1]
    assert listing['next_after'] == 1


def test_sender_must_be_caller(client, caller, room, students):
    response = client.post(f'/api/rooms/{room.id}/messages', headers=caller(students[1].id),
                           json={'sender_id': students[0].id, 'content': 'spoofed'})
    assert response.status_code == 403


def test_sender_must_have_a_profile(client, caller, room):
    response = client.post(f'/api/rooms/{room.id}/messages', headers=caller('ghost'),
                           json={'sender_id': 'ghost', 'content': 'boo'})
    assert response.status_code == 404
    assert response.get_json()['code'] == 'NotFound'
    assert client.get(f'/api/rooms/{room.id}/messages',
                      headers=caller('ghost')).get_json()['messages'] == []


def test_archived_room_over_api(client, caller, room, students):
    a = students[0].id
    assert client.post(f'/api/rooms/{room.id}/archive', headers=caller(a)).status_code == 200

    response = client.post(f'/api/rooms/{room.id}/messages', headers=caller(a),
                           json={'sender_id': a, 'content': 'anyone?'})
    assert response.status_code == 409
    assert response.get_json()['code'] == 'RoomArchived'


def test_create_room(client, caller, students):
    response = client.post('/api/rooms', headers=caller(students[0].id),
                           json={'type': 'group', 'metadata': {'title': 'Flatmates'}})
    assert response.status_code == 201
    room = response.get_json()['room']
    assert room['metadata'] == {'title': 'Flatmates'}
    assert room['status'] == 'accepting'


# ============== COMMUNITY ==============

def test_posts_and_threaded_comments(client, caller, students):
    a, b = students[0].id, students[1].id
    post = client.post('/api/posts', headers=caller(a), json={
        'author_id': a, 'title': 'Selling cycle', 'content': 'Barely used', 'tags': ['sale'],
    }).get_json()['post']

    top = client.post(f"/api/posts/{post['id']}/comments", headers=caller(b),
                      json={'author_id': b, 'content': 'Price?'})
    assert top.status_code == 201
    top_id = top.get_json()['comment']['id']

    reply = client.post(f"/api/posts/{post['id']}/comments", headers=caller(a),
                        json={'author_id': a, 'content': '2000', 'parent_id': top_id})
    assert reply.status_code == 201

    comments = client.get(f"/api/posts/{post['id']}/comments").get_json()['comments']
    assert len(comments) == 2
    assert {c['parent_id'] for c in comments} == {None, top_id}


def test_reply_must_share_post(client, caller, students):
    a = students[0].id
    first = client.post('/api/posts', headers=caller(a), json={
        'author_id': a, 'title': 'One', 'content': '1'}).get_json()['post']
    second = client.post('/api/posts', headers=caller(a), json={
        'author_id': a, 'title': 'Two', 'content': '2'}).get_json()['post']
    comment_id = client.post(f"/api/posts/{first['id']}/comments", headers=caller(a), json={
        'author_id': a, 'content': 'hi'}).get_json()['comment']['id']

    response = client.post(f"/api/posts/{second['id']}/comments", headers=caller(a), json={
        'author_id': a, 'content': 'wrong thread', 'parent_id': comment_id})
    assert response.status_code == 400

"""
pytest configuration and fixtures for BachelorBuddy tests.
"""
import pytest

from bachelorbuddy import create_app, db
from bachelorbuddy.models import Profile, PGListing, LocalVendor, ChatRoom


@pytest.fixture
def app(tmp_path):
    """App bound to a throwaway SQLite file (shared across threads)."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test_bachelorbuddy.db'}",
        'IDEMPOTENCY_RETENTION_HOURS': 24,
        'AGGREGATION_MAX_ATTEMPTS': 5,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def caller():
    """Headers for a request made by the given profile id."""
    def _headers(profile_id):
        return {'X-Caller-Id': profile_id}
    return _headers


@pytest.fixture
def owner(app):
    profile = Profile(id='owner-1', username='owner', role='pg_owner')
    db.session.add(profile)
    db.session.commit()
    return profile


@pytest.fixture
def students(app):
    """Three student profiles: student-a, student-b, student-c."""
    profiles = [Profile(id=f'student-{c}', username=f'student_{c}', role='student') for c in 'abc']
    db.session.add_all(profiles)
    db.session.commit()
    return profiles


@pytest.fixture
def listing(owner):
    listing = PGListing(
        owner_id=owner.id,
        title='Sunrise PG',
        address='12 College Road',
        monthly_rent=6500,
        location={'latitude': 12.97, 'longitude': 77.59},
    )
    db.session.add(listing)
    db.session.commit()
    return listing


@pytest.fixture
def vendor(owner):
    vendor = LocalVendor(owner_id=owner.id, name='Annapurna Mess', type='mess', address='4 Market St')
    db.session.add(vendor)
    db.session.commit()
    return vendor


@pytest.fixture
def room(app):
    room = ChatRoom(type='group', meta={'title': 'Flat 3B'})
    db.session.add(room)
    db.session.commit()
    return room

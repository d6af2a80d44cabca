from datetime import datetime
from bachelorbuddy import db
from bachelorbuddy.models.mixins import isoformat


USER_ROLES = ('student', 'pg_owner', 'vendor', 'admin')
GENDERS = ('male', 'female', 'other')


class Profile(db.Model):
    """Platform user. The id is the auth provider's user id."""
    __tablename__ = 'profiles'

    id = db.Column(db.String(36), primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=True)
    full_name = db.Column(db.String(120), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)
    role = db.Column(db.String(20), nullable=False, default='student')  # student, pg_owner, vendor, admin
    gender = db.Column(db.String(10), nullable=True)  # male, female, other
    college = db.Column(db.String(200), nullable=True)
    batch_year = db.Column(db.Integer, nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    roommate_profile = db.relationship('RoommateProfile', backref='user', uselist=False)

    def to_dict(self):
        return {
            'id': self.id,
            'updated_at': isoformat(self.updated_at),
            'username': self.username,
            'full_name': self.full_name,
            'avatar_url': self.avatar_url,
            'role': self.role,
            'gender': self.gender,
            'college': self.college,
            'batch_year': self.batch_year,
            'phone': self.phone,
            'email': self.email,
            'is_verified': self.is_verified,
        }

    def __repr__(self):
        return f'<Profile {self.username or self.id}>'

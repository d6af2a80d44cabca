from datetime import datetime
from bachelorbuddy import db
from bachelorbuddy.models.mixins import new_id, isoformat


class RoommateProfile(db.Model):
    """Roommate-search profile, one per user.

    ``preferences`` is a sparse mapping; a key mapped to null is present but
    unset, which matching treats differently from an absent key.
    """
    __tablename__ = 'roommate_profiles'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False, unique=True)
    bio = db.Column(db.Text, nullable=True)
    preferences = db.Column(db.JSON, nullable=False, default=dict)
    budget_min = db.Column(db.Integer, nullable=False, default=0)
    budget_max = db.Column(db.Integer, nullable=False, default=0)
    preferred_locations = db.Column(db.JSON, nullable=False, default=list)
    lifestyle_tags = db.Column(db.JSON, nullable=False, default=list)
    is_smoking_ok = db.Column(db.Boolean, nullable=False, default=False)
    is_pets_ok = db.Column(db.Boolean, nullable=False, default=False)
    move_in_date = db.Column(db.Date, nullable=True)
    duration_months = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('budget_min >= 0 AND budget_min <= budget_max', name='valid_budget_range'),
    )

    def to_snapshot(self):
        """Immutable view used by the matching engine."""
        from bachelorbuddy.services.matching import CandidateProfile
        return CandidateProfile.from_row(self)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
            'bio': self.bio,
            'preferences': self.preferences or {},
            'budget_range': {'min': self.budget_min, 'max': self.budget_max},
            'preferred_locations': self.preferred_locations or [],
            'lifestyle_tags': self.lifestyle_tags or [],
            'is_smoking_ok': self.is_smoking_ok,
            'is_pets_ok': self.is_pets_ok,
            'move_in_date': isoformat(self.move_in_date),
            'duration_months': self.duration_months,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<RoommateProfile user={self.user_id} active={self.is_active}>'

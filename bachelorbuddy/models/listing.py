from datetime import datetime
from bachelorbuddy import db
from bachelorbuddy.models.mixins import RatedEntityMixin, new_id, isoformat


class PGListing(RatedEntityMixin, db.Model):
    """Paying-guest accommodation listed by an owner."""
    __tablename__ = 'pg_listings'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    owner_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    address = db.Column(db.String(300), nullable=False)
    location = db.Column(db.JSON, nullable=True)  # {"latitude": .., "longitude": ..}
    monthly_rent = db.Column(db.Integer, nullable=False)
    security_deposit = db.Column(db.Integer, nullable=True)
    is_shared = db.Column(db.Boolean, nullable=False, default=False)
    max_occupancy = db.Column(db.Integer, nullable=True)
    gender_preference = db.Column(db.String(10), nullable=True)
    amenities = db.Column(db.JSON, nullable=False, default=dict)
    rules = db.Column(db.JSON, nullable=False, default=list)
    images = db.Column(db.JSON, nullable=False, default=list)
    contact_phone = db.Column(db.String(20), nullable=True)
    contact_email = db.Column(db.String(120), nullable=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {'version_id_col': version_id}

    # Relationships
    owner = db.relationship('Profile', backref=db.backref('listings', lazy='dynamic'))

    def to_dict(self):
        data = {
            'id': self.id,
            'owner_id': self.owner_id,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
            'title': self.title,
            'description': self.description,
            'address': self.address,
            'location': self.location,
            'monthly_rent': self.monthly_rent,
            'security_deposit': self.security_deposit,
            'is_shared': self.is_shared,
            'max_occupancy': self.max_occupancy,
            'gender_preference': self.gender_preference,
            'amenities': self.amenities or {},
            'rules': self.rules or [],
            'images': self.images or [],
            'contact_phone': self.contact_phone,
            'contact_email': self.contact_email,
            'is_available': self.is_available,
        }
        data.update(self.rating_fields())
        return data

    def __repr__(self):
        return f'<PGListing {self.title}>'

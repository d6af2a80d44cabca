from datetime import datetime
from bachelorbuddy import db
from bachelorbuddy.models.mixins import RatedEntityMixin, new_id, isoformat


VENDOR_TYPES = ('mess', 'laundry', 'transport', 'other')


class LocalVendor(RatedEntityMixin, db.Model):
    """Local service vendor (mess, laundry, transport)."""
    __tablename__ = 'local_vendors'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    owner_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False, default='other')  # mess, laundry, transport, other
    description = db.Column(db.Text, nullable=True)
    address = db.Column(db.String(300), nullable=False)
    location = db.Column(db.JSON, nullable=True)
    contact_phone = db.Column(db.String(20), nullable=True)
    contact_email = db.Column(db.String(120), nullable=True)
    operating_hours = db.Column(db.JSON, nullable=True)  # {"mon": {"open": "08:00", "close": "21:00"}}
    services = db.Column(db.JSON, nullable=False, default=list)
    price_range = db.Column(db.JSON, nullable=True)  # {"min": .., "max": ..}
    images = db.Column(db.JSON, nullable=False, default=list)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    version_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {'version_id_col': version_id}

    def to_dict(self):
        data = {
            'id': self.id,
            'owner_id': self.owner_id,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
            'name': self.name,
            'type': self.type,
            'description': self.description,
            'address': self.address,
            'location': self.location,
            'contact_phone': self.contact_phone,
            'contact_email': self.contact_email,
            'operating_hours': self.operating_hours,
            'services': self.services or [],
            'price_range': self.price_range,
            'images': self.images or [],
            'is_verified': self.is_verified,
        }
        data.update(self.rating_fields())
        return data

    def __repr__(self):
        return f'<LocalVendor {self.name}>'

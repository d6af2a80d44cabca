from datetime import datetime
from bachelorbuddy import db
from bachelorbuddy.models.mixins import new_id, isoformat


class Review(db.Model):
    """Member review of a PG listing or local vendor."""
    __tablename__ = 'reviews'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    author_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False, index=True)
    entity_type = db.Column(db.String(20), nullable=False)  # pg_listing, local_vendor
    entity_id = db.Column(db.String(36), nullable=False)
    rating = db.Column(db.Integer, nullable=False)  # 1-5
    content = db.Column(db.Text, nullable=True)
    images = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_reviews_entity', 'entity_type', 'entity_id'),
        db.CheckConstraint('rating >= 1 AND rating <= 5', name='valid_review_rating'),
    )

    # Relationships
    author = db.relationship('Profile', backref=db.backref('reviews', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'author_id': self.author_id,
            'created_at': isoformat(self.created_at),
            'rating': self.rating,
            'content': self.content,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'images': self.images or [],
        }

    def __repr__(self):
        return f'<Review {self.entity_type}={self.entity_id} rating={self.rating}>'

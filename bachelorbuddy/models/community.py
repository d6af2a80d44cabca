from datetime import datetime
from bachelorbuddy import db
from bachelorbuddy.models.mixins import new_id, isoformat


class CommunityPost(db.Model):
    """Community board post."""
    __tablename__ = 'community_posts'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    author_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(50), nullable=False, default='general')
    tags = db.Column(db.JSON, nullable=False, default=list)
    college = db.Column(db.String(200), nullable=True)
    batch_year = db.Column(db.Integer, nullable=True)
    upvotes = db.Column(db.Integer, nullable=False, default=0)
    downvotes = db.Column(db.Integer, nullable=False, default=0)
    is_pinned = db.Column(db.Boolean, nullable=False, default=False)
    is_archived = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    comments = db.relationship('PostComment', backref='post', lazy='dynamic',
                               cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'author_id': self.author_id,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
            'title': self.title,
            'content': self.content,
            'category': self.category,
            'tags': self.tags or [],
            'college': self.college,
            'batch_year': self.batch_year,
            'upvotes': self.upvotes,
            'downvotes': self.downvotes,
            'is_pinned': self.is_pinned,
            'is_archived': self.is_archived,
        }

    def __repr__(self):
        return f'<CommunityPost {self.title}>'


class PostComment(db.Model):
    """Comment on a post, optionally replying to another comment."""
    __tablename__ = 'post_comments'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    post_id = db.Column(db.String(36), db.ForeignKey('community_posts.id'), nullable=False, index=True)
    author_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False)
    parent_id = db.Column(db.String(36), db.ForeignKey('post_comments.id'), nullable=True)
    content = db.Column(db.Text, nullable=False)
    upvotes = db.Column(db.Integer, nullable=False, default=0)
    downvotes = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'post_id': self.post_id,
            'author_id': self.author_id,
            'parent_id': self.parent_id,
            'created_at': isoformat(self.created_at),
            'content': self.content,
            'upvotes': self.upvotes,
            'downvotes': self.downvotes,
        }

    def __repr__(self):
        return f'<PostComment post={self.post_id}>'

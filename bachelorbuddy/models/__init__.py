# Import all models here so they're registered with SQLAlchemy
from bachelorbuddy.models.profile import Profile
from bachelorbuddy.models.listing import PGListing
from bachelorbuddy.models.vendor import LocalVendor
from bachelorbuddy.models.roommate import RoommateProfile
from bachelorbuddy.models.review import Review
from bachelorbuddy.models.chat import ChatRoom, ChatMessage
from bachelorbuddy.models.community import CommunityPost, PostComment

__all__ = ['Profile', 'PGListing', 'LocalVendor', 'RoommateProfile', 'Review',
           'ChatRoom', 'ChatMessage', 'CommunityPost', 'PostComment']

from app.core.models.user import User
from app.core.models.post import Post

__all__ = ["User", "Post"]

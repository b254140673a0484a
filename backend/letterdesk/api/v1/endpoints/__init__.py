# API endpoints
from . import auth, letters

__all__ = ["auth", "letters"]

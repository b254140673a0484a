# Re-export all models for convenient imports
from letterdesk.models.user import User, UserRole, SUPERVISORY_ROLES
from letterdesk.models.letter import Letter, LetterStatus, DECISION_STATUSES, NUMBERED_STATUSES

__all__ = [
    # User
    "User",
    "UserRole",
    "SUPERVISORY_ROLES",
    # Letter
    "Letter",
    "LetterStatus",
    "DECISION_STATUSES",
    "NUMBERED_STATUSES",
]

# Authentication module

from letterdesk.modules.auth.dependencies import (
    get_current_user,
    get_current_supervisor,
    get_current_student,
)

__all__ = [
    "get_current_user",
    "get_current_supervisor",
    "get_current_student",
]

from letterdesk.services.letter_store import LetterStore
from letterdesk.services.letter_numbering import (
    LetterNumberingService,
    ScopeLocks,
    letter_numbering_service,
)
from letterdesk.services.letter_service import LetterService, get_letter_service

__all__ = [
    "LetterStore",
    "LetterNumberingService",
    "ScopeLocks",
    "letter_numbering_service",
    "LetterService",
    "get_letter_service",
]

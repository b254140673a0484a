"""
Letter request model

A letter is requested by a student in ``pending`` status, approved or rejected
exactly once by a supervisor, and receives a reference number of the form
``YYYY/MM/TYPE/SEQ`` when approved.
"""

import enum
from datetime import datetime

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON, Index, Enum as SQLEnum

from letterdesk.core.database import Base
from letterdesk.core.types import GUID, generate_uuid


class LetterStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


# Statuses reachable through a status change request
DECISION_STATUSES = frozenset({LetterStatus.APPROVED, LetterStatus.REJECTED})

# Statuses in which a letter may carry a number
NUMBERED_STATUSES = frozenset({LetterStatus.APPROVED, LetterStatus.COMPLETED})


class Letter(Base):
    """Letter request submitted by a student"""
    __tablename__ = "letters"
    __table_args__ = (
        Index("ix_letters_requester_status", "requester_id", "status"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    letter_type = Column(String(20), nullable=False, index=True)
    status = Column(SQLEnum(LetterStatus), default=LetterStatus.PENDING, nullable=False, index=True)

    # Unique across every letter; null until assigned
    letter_number = Column(String(100), unique=True, nullable=True)

    requester_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    supplementary_data = Column(JSON, nullable=False, default=dict)
    purpose = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Decision metadata
    approved_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Last automatic numbering failure; cleared once a number is assigned
    numbering_error = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Letter {self.id} {self.letter_type} {self.status.value if self.status else None}>"

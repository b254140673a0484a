"""
Letter Schemas - Request/Response models for letter requests and numbering
"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime

from letterdesk.models.letter import LetterStatus
from letterdesk.utils.pagination import PaginatedResponse


# ============== Letter Types ==============

class LetterTypeResponse(BaseModel):
    """One entry of the letter type catalog"""
    code: str
    name: str
    description: str = ""
    required_fields: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


# ============== Requests ==============

class LetterCreate(BaseModel):
    """Schema for requesting a new letter (students only)"""
    letter_type: str = Field(..., min_length=1, max_length=20, description="Letter type code, e.g. SKA")
    supplementary_data: Dict[str, Any] = Field(default_factory=dict, description="Fields required by the letter type")
    purpose: Optional[str] = Field(None, max_length=500, description="What the letter will be used for")
    notes: Optional[str] = Field(None, max_length=1000, description="Extra notes for the reviewer")

    @field_validator('letter_type')
    @classmethod
    def uppercase_code(cls, v):
        return v.upper().strip()


class LetterStatusUpdate(BaseModel):
    """Approve or reject a pending letter"""
    # Plain string so an unsupported status is reported as invalid input, not a schema error
    status: str = Field(..., description='"approved" or "rejected"')
    rejection_reason: Optional[str] = Field(None, max_length=1000, description="Required when rejecting")

    @field_validator('status')
    @classmethod
    def normalize_status(cls, v):
        return v.lower().strip()


class LetterNumberEdit(BaseModel):
    """Manually overwrite a letter number"""
    letter_number: str = Field(..., min_length=1, max_length=100, description="New letter number, any format")


# ============== Responses ==============

class LetterResponse(BaseModel):
    """Schema for letter response"""
    id: str
    letter_type: str
    status: LetterStatus
    letter_number: Optional[str] = None
    requester_id: str
    supplementary_data: Dict[str, Any] = Field(default_factory=dict)
    purpose: Optional[str] = None
    notes: Optional[str] = None

    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    numbering_error: Optional[str] = None

    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LetterDetailResponse(LetterResponse):
    """Letter with its type's display metadata"""
    letter_type_info: Optional[LetterTypeResponse] = None


LetterListResponse = PaginatedResponse[LetterResponse]


# ============== Numbering ==============

class TypeStatistics(BaseModel):
    count: int
    last_number: Optional[int] = None


class NumberingStatistics(BaseModel):
    """Numbered letters per type for one year"""
    year: int
    total_letters: int
    by_type: Dict[str, TypeStatistics] = Field(default_factory=dict)


class ReconciledLetter(BaseModel):
    letter_id: str
    letter_number: str


class ReconcileFailure(BaseModel):
    letter_id: str
    error: str


class ReconcileResult(BaseModel):
    """Outcome of retrying numbering for approved letters without a number"""
    attempted: int
    numbered: List[ReconciledLetter] = Field(default_factory=list)
    failed: List[ReconcileFailure] = Field(default_factory=list)

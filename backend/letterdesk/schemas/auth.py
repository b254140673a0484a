from pydantic import BaseModel, EmailStr, Field, field_serializer, model_validator
from typing import Optional
from datetime import datetime
from uuid import UUID

from letterdesk.models.user import UserRole


class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, pattern=r'^\+?\d{8,15}$', description="Phone number, digits with optional leading +")
    role: UserRole = UserRole.STUDENT

    # Campus identifiers
    nim: Optional[str] = Field(None, max_length=20, description="Student number (NIM)")
    nip: Optional[str] = Field(None, max_length=20, description="Staff number (NIP)")

    @model_validator(mode='after')
    def validate_identifiers(self):
        """Students need a NIM, staff need a NIP"""
        if self.role == UserRole.STUDENT:
            if not self.nim or not self.nim.strip():
                raise ValueError("Required fields for students: NIM")
        elif not self.nip or not self.nip.strip():
            raise ValueError("Required fields for staff: NIP")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: UUID
    email: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    nim: Optional[str] = None
    nip: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    @field_serializer('id')
    def serialize_id(self, value: UUID) -> str:
        return str(value)

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse

# Pydantic schemas
from letterdesk.schemas.auth import (
    UserRegister,
    UserLogin,
    Token,
    UserResponse,
    LoginResponse,
)
from letterdesk.schemas.letter import (
    LetterTypeResponse,
    LetterCreate,
    LetterStatusUpdate,
    LetterNumberEdit,
    LetterResponse,
    LetterDetailResponse,
    LetterListResponse,
    TypeStatistics,
    NumberingStatistics,
    ReconcileResult,
)

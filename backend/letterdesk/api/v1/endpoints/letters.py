"""
Letter request endpoints

Students request letters; supervisors and admins approve or reject them and
manage their reference numbers. Service errors (LetterDeskError) are rendered
by the application-level exception handler.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from letterdesk.config.letter_types import LetterTypeRegistry, get_letter_type_registry
from letterdesk.core.database import get_db
from letterdesk.core.rate_limiter import letter_request_rate_limit
from letterdesk.models.letter import Letter
from letterdesk.models.user import User
from letterdesk.modules.auth.dependencies import (
    get_current_user,
    get_current_supervisor,
    get_current_student,
)
from letterdesk.schemas.letter import (
    LetterCreate,
    LetterDetailResponse,
    LetterListResponse,
    LetterNumberEdit,
    LetterResponse,
    LetterStatusUpdate,
    LetterTypeResponse,
    NumberingStatistics,
    ReconcileResult,
)
from letterdesk.services.letter_service import LetterService, get_letter_service

router = APIRouter()


def _detail(letter: Letter, registry: LetterTypeRegistry) -> LetterDetailResponse:
    info = registry.get(letter.letter_type)
    return LetterDetailResponse.model_validate(letter).model_copy(
        update={"letter_type_info": LetterTypeResponse(**info.to_dict()) if info else None}
    )


# ==================== Catalog ====================

@router.get("/types", response_model=List[LetterTypeResponse])
async def list_letter_types(
    current_user: User = Depends(get_current_user),
    registry: LetterTypeRegistry = Depends(get_letter_type_registry),
):
    """All letter types that can be requested"""
    return [LetterTypeResponse(**info.to_dict()) for info in registry]


# ==================== Requests ====================

@router.post("", response_model=LetterDetailResponse, status_code=status.HTTP_201_CREATED)
@letter_request_rate_limit()
async def request_letter(
    request: Request,
    letter_data: LetterCreate,
    current_user: User = Depends(get_current_student),
    db: AsyncSession = Depends(get_db),
    service: LetterService = Depends(get_letter_service),
):
    """Request a new letter (students only, rate limited: 20/min)"""
    letter = await service.request_letter(
        db,
        letter_type=letter_data.letter_type,
        requester_id=current_user.id,
        supplementary_data=letter_data.supplementary_data,
        purpose=letter_data.purpose,
        notes=letter_data.notes,
    )
    return _detail(letter, service.registry)


@router.get("", response_model=LetterListResponse)
async def list_letters(
    status_filter: Optional[str] = Query(None, alias="status", description="pending, approved, rejected or completed"),
    letter_type: Optional[str] = Query(None, description="Letter type code"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LetterService = Depends(get_letter_service),
):
    """
    List letters, newest first.

    Students only see their own requests.
    """
    result = await service.list_letters(
        db,
        actor=current_user,
        status=status_filter,
        letter_type=letter_type.upper() if letter_type else None,
        page=page,
        page_size=page_size,
    )
    result["items"] = [LetterResponse.model_validate(letter) for letter in result["items"]]
    return result


# ==================== Numbering (collection level) ====================

@router.get("/stats/numbering", response_model=NumberingStatistics)
async def numbering_statistics(
    year: Optional[int] = Query(None, ge=1000, le=9999, description="Defaults to the current year"),
    current_user: User = Depends(get_current_supervisor),
    db: AsyncSession = Depends(get_db),
    service: LetterService = Depends(get_letter_service),
):
    """Numbered letters per type for a year (supervisors only)"""
    return await service.statistics(db, year)


@router.post("/numbering/reconcile", response_model=ReconcileResult)
async def reconcile_numbering(
    current_user: User = Depends(get_current_supervisor),
    db: AsyncSession = Depends(get_db),
    service: LetterService = Depends(get_letter_service),
):
    """Retry numbering for approved letters whose automatic numbering failed"""
    return await service.reconcile_numbering(db)


# ==================== Single letter ====================

@router.get("/{letter_id}", response_model=LetterDetailResponse)
async def get_letter(
    letter_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LetterService = Depends(get_letter_service),
):
    """Get a letter by ID"""
    letter = await service.get_letter(db, letter_id, current_user)
    return _detail(letter, service.registry)


@router.delete("/{letter_id}")
async def delete_letter(
    letter_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LetterService = Depends(get_letter_service),
):
    """Delete a pending letter (requester, supervisor or admin)"""
    await service.delete_letter(db, letter_id, current_user)
    return {"message": "Letter deleted successfully", "letter_id": letter_id}


@router.put("/{letter_id}/status", response_model=LetterResponse)
async def update_letter_status(
    letter_id: str,
    status_update: LetterStatusUpdate,
    current_user: User = Depends(get_current_supervisor),
    db: AsyncSession = Depends(get_db),
    service: LetterService = Depends(get_letter_service),
):
    """
    Approve or reject a pending letter (supervisors only).

    Approval assigns the next letter number. If that fails the approval
    still stands and ``numbering_error`` explains why.
    """
    return await service.change_status(
        db,
        letter_id,
        status_update.status,
        actor=current_user,
        rejection_reason=status_update.rejection_reason,
    )


@router.put("/{letter_id}/number/assign", response_model=LetterResponse)
async def assign_letter_number(
    letter_id: str,
    current_user: User = Depends(get_current_supervisor),
    db: AsyncSession = Depends(get_db),
    service: LetterService = Depends(get_letter_service),
):
    """Assign the next number to an approved letter without one"""
    return await service.assign_number(db, letter_id)


@router.put("/{letter_id}/number/cancel", response_model=LetterResponse)
async def cancel_letter_number(
    letter_id: str,
    current_user: User = Depends(get_current_supervisor),
    db: AsyncSession = Depends(get_db),
    service: LetterService = Depends(get_letter_service),
):
    """Remove a letter's number; the sequence keeps its gap"""
    return await service.cancel_number(db, letter_id)


@router.put("/{letter_id}/number/edit", response_model=LetterResponse)
async def edit_letter_number(
    letter_id: str,
    number_edit: LetterNumberEdit,
    current_user: User = Depends(get_current_supervisor),
    db: AsyncSession = Depends(get_db),
    service: LetterService = Depends(get_letter_service),
):
    """Overwrite a letter's number with any string not held by another letter"""
    return await service.edit_number(db, letter_id, number_edit.letter_number)

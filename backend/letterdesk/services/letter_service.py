"""
Letter Service - lifecycle of letter requests

Handles:
- Request creation, validated against the letter type registry
- Listing and fetching with per-role visibility
- Approve / reject transitions (approval triggers numbering)
- Deletion of pending requests
- Reconciliation of approvals whose automatic numbering failed
"""

from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from letterdesk.config.letter_types import LetterTypeRegistry, get_letter_type_registry
from letterdesk.core.config import settings
from letterdesk.core.exceptions import (
    AuthorizationError,
    InvalidInputError,
    InvalidLetterTypeError,
    InvalidStateError,
    LetterDeskError,
    MissingRequiredFieldsError,
)
from letterdesk.core.logging_config import logger
from letterdesk.models.letter import Letter, LetterStatus, DECISION_STATUSES
from letterdesk.models.user import User, UserRole
from letterdesk.services.letter_numbering import LetterNumberingService, letter_numbering_service
from letterdesk.services.letter_store import LetterStore

# Stored numbering_error is truncated to this length
MAX_NUMBERING_ERROR_LENGTH = 500


def _parse_status(value: Union[str, LetterStatus, None]) -> Optional[LetterStatus]:
    if value is None or isinstance(value, LetterStatus):
        return value
    try:
        return LetterStatus(value)
    except ValueError:
        return None


class LetterService:
    """Service for letter requests and their status transitions"""

    def __init__(
        self,
        registry: LetterTypeRegistry,
        numbering: LetterNumberingService,
        max_page_size: int = settings.LETTERS_MAX_PAGE_SIZE,
    ):
        self.registry = registry
        self.numbering = numbering
        self.max_page_size = max_page_size

    # ==================== REQUESTS ====================

    async def request_letter(
        self,
        db: AsyncSession,
        letter_type: str,
        requester_id: str,
        supplementary_data: Optional[Dict[str, Any]] = None,
        purpose: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Letter:
        """
        Create a pending letter request

        Args:
            db: Database session
            letter_type: Registry code, e.g. "SKA"
            requester_id: Requesting student's user ID
            supplementary_data: Type-specific fields
            purpose: Optional free-text purpose
            notes: Optional free-text notes

        Returns:
            The new pending letter

        Raises:
            InvalidLetterTypeError: unknown letter type
            MissingRequiredFieldsError: required supplementary fields absent or empty
        """
        type_info = self.registry.get(letter_type)
        if type_info is None:
            raise InvalidLetterTypeError(letter_type)

        data = dict(supplementary_data or {})
        missing = type_info.missing_fields(data)
        if missing:
            raise MissingRequiredFieldsError(letter_type, missing)

        letter = await LetterStore(db).create(
            letter_type=letter_type,
            requester_id=str(requester_id),
            supplementary_data=data,
            purpose=purpose,
            notes=notes,
            status=LetterStatus.PENDING,
        )
        logger.log_letter_event(letter.id, "requested", letter_type=letter_type, requester_id=str(requester_id))
        return letter

    async def list_letters(
        self,
        db: AsyncSession,
        actor: User,
        status: Union[str, LetterStatus, None] = None,
        letter_type: Optional[str] = None,
        requester_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> dict:
        """Paginated letters, newest first. Students only ever see their own."""
        parsed_status = _parse_status(status)
        if status is not None and parsed_status is None:
            raise InvalidInputError(f"Invalid status filter: {status}", field="status")

        if actor.role == UserRole.STUDENT:
            requester_id = actor.id

        return await LetterStore(db).list(
            requester_id=requester_id,
            status=parsed_status,
            letter_type=letter_type,
            page=page,
            page_size=page_size,
            max_page_size=self.max_page_size,
        )

    async def get_letter(self, db: AsyncSession, letter_id: str, actor: User) -> Letter:
        letter = await LetterStore(db).get_or_raise(letter_id)
        if actor.role == UserRole.STUDENT and letter.requester_id != actor.id:
            raise AuthorizationError("You can only view your own letters")
        return letter

    # ==================== TRANSITIONS ====================

    async def change_status(
        self,
        db: AsyncSession,
        letter_id: str,
        target_status: Union[str, LetterStatus],
        actor: User,
        rejection_reason: Optional[str] = None,
    ) -> Letter:
        """
        Approve or reject a pending letter

        Approval is committed before numbering runs. If numbering then fails
        the letter stays approved without a number, the failure is recorded in
        ``numbering_error`` and reconcile_numbering() can retry it later.

        Raises:
            InvalidInputError: target is not approved/rejected, or rejecting without a reason
            LetterNotFoundError: no such letter
            InvalidStateError: letter is no longer pending
        """
        target = _parse_status(target_status)
        if target not in DECISION_STATUSES:
            raise InvalidInputError('Invalid status. Must be "approved" or "rejected"', field="status")

        reason = (rejection_reason or "").strip()
        if target == LetterStatus.REJECTED and not reason:
            raise InvalidInputError("Rejection reason is required when rejecting a letter", field="rejection_reason")

        store = LetterStore(db)
        letter = await store.get_or_raise(letter_id)
        self._ensure_pending(letter)

        now = datetime.utcnow()
        if target == LetterStatus.APPROVED:
            fields = {"status": LetterStatus.APPROVED, "approved_by": actor.id, "approved_at": now}
        else:
            fields = {
                "status": LetterStatus.REJECTED,
                "rejected_by": actor.id,
                "rejected_at": now,
                "rejection_reason": reason,
            }

        if not await store.update_if_status(letter_id, LetterStatus.PENDING, **fields):
            # Another decision landed between the read and the write
            self._ensure_pending(await store.get_or_raise(letter_id))

        logger.log_letter_event(letter_id, target.value, actor_id=actor.id)

        if target == LetterStatus.APPROVED:
            return await self._number_after_approval(db, letter_id)
        return await store.get_or_raise(letter_id)

    async def _number_after_approval(self, db: AsyncSession, letter_id: str) -> Letter:
        store = LetterStore(db)
        try:
            return await self.numbering.assign_number(db, letter_id)
        except (LetterDeskError, SQLAlchemyError) as exc:
            if isinstance(exc, SQLAlchemyError):
                await db.rollback()
            logger.log_error_with_context(exc, context="numbering after approval", letter_ref=letter_id)
            message = exc.message if isinstance(exc, LetterDeskError) else f"{type(exc).__name__}: {exc}"
            letter = await store.get_or_raise(letter_id)
            return await store.update(letter, numbering_error=message[:MAX_NUMBERING_ERROR_LENGTH])

    async def delete_letter(self, db: AsyncSession, letter_id: str, actor: User) -> None:
        """
        Delete a pending letter. Allowed for the requester and supervisory roles.
        """
        store = LetterStore(db)
        letter = await store.get_or_raise(letter_id)
        if letter.requester_id != actor.id and not actor.is_supervisory:
            raise AuthorizationError("You can only delete your own letters")
        self._ensure_pending(letter, "Only pending letters can be deleted")

        if not await store.delete_if_status(letter_id, LetterStatus.PENDING):
            raise InvalidStateError("Only pending letters can be deleted")

        logger.log_letter_event(letter_id, "deleted", actor_id=actor.id)

    # ==================== NUMBERING ====================

    async def assign_number(self, db: AsyncSession, letter_id: str) -> Letter:
        return await self.numbering.assign_number(db, letter_id)

    async def cancel_number(self, db: AsyncSession, letter_id: str) -> Letter:
        return await self.numbering.cancel_number(db, letter_id)

    async def edit_number(self, db: AsyncSession, letter_id: str, new_number: str) -> Letter:
        return await self.numbering.edit_number(db, letter_id, new_number)

    async def statistics(self, db: AsyncSession, year: Optional[int] = None) -> dict:
        return await self.numbering.get_statistics(db, year)

    async def reconcile_numbering(self, db: AsyncSession) -> dict:
        """
        Retry numbering for approved letters whose automatic numbering failed.

        Letters whose number was canceled on purpose carry no numbering_error
        and are left alone. Oldest approvals are numbered first.
        """
        store = LetterStore(db)
        pending = await store.find_all(
            Letter.status == LetterStatus.APPROVED,
            Letter.letter_number.is_(None),
            Letter.numbering_error.isnot(None),
            order_by=[Letter.approved_at.asc(), Letter.created_at.asc()],
        )
        letter_ids = [letter.id for letter in pending]

        numbered = []
        failed = []
        for letter_id in letter_ids:
            try:
                letter = await self.numbering.assign_number(db, letter_id)
            except LetterDeskError as exc:
                failed.append({"letter_id": letter_id, "error": exc.message})
                letter = await store.get(letter_id)
                if letter is not None:
                    await store.update(letter, numbering_error=exc.message[:MAX_NUMBERING_ERROR_LENGTH])
                continue
            numbered.append({"letter_id": letter_id, "letter_number": letter.letter_number})

        logger.log_numbering_event(
            "reconciled",
            attempted=len(letter_ids),
            numbered=len(numbered),
            failed=len(failed),
        )
        return {"attempted": len(letter_ids), "numbered": numbered, "failed": failed}

    # ==================== HELPERS ====================

    @staticmethod
    def _ensure_pending(letter: Letter, message: Optional[str] = None) -> None:
        if letter.status != LetterStatus.PENDING:
            raise InvalidStateError(
                message or f"Letter is already {letter.status.value}",
                current_status=letter.status.value,
            )


@lru_cache(maxsize=1)
def get_letter_service() -> LetterService:
    """Process-wide LetterService wired to the registry and numbering singleton"""
    return LetterService(get_letter_type_registry(), letter_numbering_service)

"""
Letter Store - persistence access for Letter rows

Every write commits immediately so a single call is one atomic single-record
update. Reads use populate_existing so objects already in the session's
identity map are refreshed from the database instead of being served stale.

Database failures surface as:
- LetterNumberConflictError: unique constraint on letter_number violated
- StorageError: any other SQLAlchemy failure (after rollback)
"""

from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from letterdesk.core.exceptions import (
    LetterNotFoundError,
    LetterNumberConflictError,
    StorageError,
)
from letterdesk.core.logging_config import logger
from letterdesk.models.letter import Letter, LetterStatus
from letterdesk.utils.pagination import paginate


class LetterStore:
    """Record store for letters, bound to one database session"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== READS ====================

    async def get(self, letter_id: str) -> Optional[Letter]:
        """Fetch a letter by id, or None"""
        result = await self.db.execute(
            select(Letter)
            .where(Letter.id == str(letter_id))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_raise(self, letter_id: str) -> Letter:
        letter = await self.get(letter_id)
        if letter is None:
            raise LetterNotFoundError(str(letter_id))
        return letter

    async def find_one(self, *criteria, order_by: Optional[Sequence[Any]] = None) -> Optional[Letter]:
        query = select(Letter).where(*criteria).execution_options(populate_existing=True)
        if order_by is not None:
            query = query.order_by(*order_by)
        result = await self.db.execute(query.limit(1))
        return result.scalars().first()

    async def find_all(self, *criteria, order_by: Optional[Sequence[Any]] = None) -> List[Letter]:
        query = select(Letter).where(*criteria).execution_options(populate_existing=True)
        if order_by is not None:
            query = query.order_by(*order_by)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def numbers_with_prefix(self, prefix: str) -> List[str]:
        """All letter numbers starting with the literal prefix"""
        result = await self.db.execute(
            select(Letter.letter_number).where(
                Letter.letter_number.startswith(prefix, autoescape=True)
            )
        )
        return [number for number in result.scalars().all() if number is not None]

    async def numbered_types_with_prefix(self, prefix: str) -> List[Tuple[str, str]]:
        """(letter_type, letter_number) pairs for numbers starting with the literal prefix"""
        result = await self.db.execute(
            select(Letter.letter_type, Letter.letter_number).where(
                Letter.letter_number.startswith(prefix, autoescape=True)
            )
        )
        return [(row.letter_type, row.letter_number) for row in result.all()]

    async def holder_of(self, letter_number: str, exclude_id: Optional[str] = None) -> Optional[Letter]:
        """The letter holding exactly this number, optionally ignoring one letter"""
        criteria = [Letter.letter_number == letter_number]
        if exclude_id is not None:
            criteria.append(Letter.id != str(exclude_id))
        return await self.find_one(*criteria)

    async def list(
        self,
        requester_id: Optional[str] = None,
        status: Optional[LetterStatus] = None,
        letter_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
        max_page_size: int = 100,
    ) -> dict:
        """Paginated listing, newest first"""
        query = select(Letter)
        if requester_id is not None:
            query = query.where(Letter.requester_id == str(requester_id))
        if status is not None:
            query = query.where(Letter.status == status)
        if letter_type is not None:
            query = query.where(Letter.letter_type == letter_type)
        query = query.order_by(Letter.created_at.desc(), Letter.id).execution_options(populate_existing=True)

        return await paginate(self.db, query, page=page, page_size=page_size, max_page_size=max_page_size)

    # ==================== WRITES ====================

    async def create(self, **fields) -> Letter:
        letter = Letter(**fields)
        self.db.add(letter)
        await self._commit("create")
        await self.db.refresh(letter)
        return letter

    async def update(self, letter: Letter, **fields) -> Letter:
        """Set fields on a letter and commit"""
        for name, value in fields.items():
            setattr(letter, name, value)
        await self._commit("update", letter_number=fields.get("letter_number"))
        await self.db.refresh(letter)
        return letter

    async def update_if_status(self, letter_id: str, expected_status: LetterStatus, **fields) -> bool:
        """
        Compare-and-set update: apply fields only while the letter still has
        expected_status. Returns False when another writer got there first.
        """
        stmt = (
            update(Letter)
            .where(Letter.id == str(letter_id), Letter.status == expected_status)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_and_commit(stmt, "transition", letter_number=fields.get("letter_number"))

    async def claim_number(self, letter_id: str, letter_number: str) -> bool:
        """
        Write a number onto an approved, unnumbered letter.

        Returns False if the letter is no longer approved-and-unnumbered.
        Raises LetterNumberConflictError if another letter already holds the number.
        """
        stmt = (
            update(Letter)
            .where(
                Letter.id == str(letter_id),
                Letter.status == LetterStatus.APPROVED,
                Letter.letter_number.is_(None),
            )
            .values(letter_number=letter_number, numbering_error=None)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_and_commit(stmt, "assign number", letter_number=letter_number)

    async def delete_if_status(self, letter_id: str, expected_status: LetterStatus) -> bool:
        """Delete the letter only while it still has expected_status"""
        stmt = (
            delete(Letter)
            .where(Letter.id == str(letter_id), Letter.status == expected_status)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_and_commit(stmt, "delete")

    # ==================== INTERNALS ====================

    async def _execute_and_commit(self, stmt, operation: str, letter_number: Optional[str] = None) -> bool:
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise self._integrity_error(exc, operation, letter_number) from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"[LetterStore] {operation} failed: {exc}")
            raise StorageError(f"Failed to {operation} letter", operation=operation) from exc
        return result.rowcount == 1

    async def _commit(self, operation: str, letter_number: Optional[str] = None) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise self._integrity_error(exc, operation, letter_number) from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"[LetterStore] {operation} failed: {exc}")
            raise StorageError(f"Failed to {operation} letter", operation=operation) from exc

    @staticmethod
    def _integrity_error(exc: IntegrityError, operation: str, letter_number: Optional[str]):
        # letter_number is the only unique column besides the primary key
        if letter_number is not None:
            return LetterNumberConflictError(letter_number)
        logger.error(f"[LetterStore] {operation} violated a constraint: {exc}")
        return StorageError(f"Failed to {operation} letter", operation=operation)

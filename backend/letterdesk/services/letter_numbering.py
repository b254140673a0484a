"""
Letter Numbering Service - allocation of YYYY/MM/TYPE/SEQ reference numbers

A numbering scope is one (year, month, letter type) triple, written as the
prefix ``YYYY/MM/TYPE/``. Within a scope the next number is the highest
existing sequence plus one, zero-padded to three digits.

Allocation is serialized per scope with an in-process lock, and the unique
constraint on ``letters.letter_number`` backs it up across processes: a
write that loses a race is rolled back and the number recomputed, up to
LETTER_NUMBER_MAX_RETRIES times.

Canceling a number leaves a permanent gap; numbers are never reused unless
they happen to be the current maximum of their scope.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import AsyncIterator, Callable, Dict, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from letterdesk.core.config import settings
from letterdesk.core.exceptions import (
    InvalidInputError,
    InvalidStateError,
    LetterNumberConflictError,
)
from letterdesk.core.logging_config import logger
from letterdesk.models.letter import Letter, LetterStatus, NUMBERED_STATUSES
from letterdesk.services.letter_store import LetterStore

SEQUENCE_WIDTH = 3
MAX_PADDED_SEQUENCE = 10 ** SEQUENCE_WIDTH - 1


# ==================== FORMAT HELPERS ====================

def scope_prefix(letter_type: str, reference_date: date) -> str:
    """Literal prefix shared by every number in a scope, e.g. ``2025/10/SKA/``"""
    return f"{reference_date.year:04d}/{reference_date.month:02d}/{letter_type}/"


def format_letter_number(letter_type: str, reference_date: date, sequence: int) -> str:
    """Render a full letter number; sequences above 999 simply grow wider"""
    return f"{scope_prefix(letter_type, reference_date)}{sequence:0{SEQUENCE_WIDTH}d}"


def _as_sequence(text: str) -> Optional[int]:
    if text and text.isascii() and text.isdigit():
        return int(text)
    return None


def parse_sequence(letter_number: Optional[str], prefix: str) -> Optional[int]:
    """Sequence part of a number in the given scope, or None if it is not numeric"""
    if not letter_number or not letter_number.startswith(prefix):
        return None
    return _as_sequence(letter_number[len(prefix):])


def parse_statistics_sequence(letter_number: Optional[str]) -> Optional[int]:
    """Fourth ``/`` segment of a number as an int, or None if absent or non-numeric"""
    if not letter_number:
        return None
    parts = letter_number.split("/")
    if len(parts) != 4:
        return None
    return _as_sequence(parts[3])


def numbering_now() -> datetime:
    """Current time in LETTER_NUMBER_TIMEZONE, or server local time if unset"""
    if settings.LETTER_NUMBER_TIMEZONE:
        return datetime.now(ZoneInfo(settings.LETTER_NUMBER_TIMEZONE))
    return datetime.now()


# ==================== SCOPE LOCKS ====================

@dataclass
class _ScopeLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class ScopeLocks:
    """
    One asyncio.Lock per numbering scope.

    Entries are reference counted and dropped once nobody holds or waits on
    them, so the table only ever contains scopes with allocations in flight.
    """

    def __init__(self):
        self._locks: Dict[str, _ScopeLock] = {}

    @asynccontextmanager
    async def hold(self, scope: str) -> AsyncIterator[None]:
        entry = self._locks.get(scope)
        if entry is None:
            entry = self._locks[scope] = _ScopeLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._locks.pop(scope, None)

    def __len__(self) -> int:
        return len(self._locks)


# ==================== SERVICE ====================

class LetterNumberingService:
    """Assigns, cancels, edits and reports on letter numbers"""

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        max_retries: Optional[int] = None,
        locks: Optional[ScopeLocks] = None,
    ):
        self.clock = clock or numbering_now
        self.max_retries = max_retries if max_retries is not None else settings.LETTER_NUMBER_MAX_RETRIES
        self.locks = locks or ScopeLocks()

    async def compute_next_number(
        self,
        db: AsyncSession,
        letter_type: str,
        reference_date: Optional[date] = None,
    ) -> str:
        """
        Next free number in the scope of letter_type and reference_date.

        Only numbers whose remainder after the scope prefix is all digits
        count towards the maximum; anything else sharing the prefix is ignored.
        This is a read, not a reservation: callers must hold the scope lock
        and write the result under the unique constraint.
        """
        reference_date = reference_date or self.clock()
        prefix = scope_prefix(letter_type, reference_date)

        store = LetterStore(db)
        highest = 0
        for number in await store.numbers_with_prefix(prefix):
            sequence = parse_sequence(number, prefix)
            if sequence is not None and sequence > highest:
                highest = sequence

        next_sequence = highest + 1
        if next_sequence > MAX_PADDED_SEQUENCE:
            logger.log_numbering_event(
                "sequence_overflow",
                letter_number=format_letter_number(letter_type, reference_date, next_sequence),
                level=logging.WARNING,
                scope=prefix,
            )
        return format_letter_number(letter_type, reference_date, next_sequence)

    async def assign_number(
        self,
        db: AsyncSession,
        letter_id: str,
        reference_date: Optional[date] = None,
    ) -> Letter:
        """
        Give an approved, unnumbered letter the next number of its scope.

        Raises:
            LetterNotFoundError: no such letter
            InvalidStateError: letter is not approved or already has a number
            LetterNumberConflictError: every retry collided with another writer
        """
        store = LetterStore(db)
        letter = await store.get_or_raise(letter_id)
        self._check_assignable(letter)

        letter_type = letter.letter_type
        reference_date = reference_date or self.clock()
        prefix = scope_prefix(letter_type, reference_date)
        attempts = max(1, self.max_retries)
        candidate = None

        for attempt in range(1, attempts + 1):
            async with self.locks.hold(prefix):
                candidate = await self.compute_next_number(db, letter_type, reference_date)
                try:
                    claimed = await store.claim_number(letter_id, candidate)
                except LetterNumberConflictError:
                    logger.log_numbering_event(
                        "retry",
                        letter_id=letter_id,
                        letter_number=candidate,
                        level=logging.WARNING,
                        attempt=attempt,
                    )
                    continue

                letter = await store.get_or_raise(letter_id)
                if not claimed:
                    # Status or number changed since the first read
                    self._check_assignable(letter)
                    continue

            logger.log_numbering_event("assigned", letter_id=letter_id, letter_number=letter.letter_number)
            return letter

        logger.log_numbering_event(
            "exhausted",
            letter_id=letter_id,
            letter_number=candidate,
            level=logging.ERROR,
            attempts=attempts,
        )
        raise LetterNumberConflictError(
            candidate,
            message=f"Could not assign a unique letter number after {attempts} attempts",
        )

    async def cancel_number(self, db: AsyncSession, letter_id: str) -> Letter:
        """
        Clear a letter's number. The letter keeps its status and the freed
        number is not handed out again unless it was the scope maximum.
        """
        store = LetterStore(db)
        letter = await store.get_or_raise(letter_id)
        if letter.letter_number is None:
            raise InvalidStateError("Letter does not have a number assigned", current_status=letter.status.value)

        previous = letter.letter_number
        letter = await store.update(letter, letter_number=None)
        logger.log_numbering_event("canceled", letter_id=letter_id, letter_number=previous)
        return letter

    async def edit_number(self, db: AsyncSession, letter_id: str, new_number: str) -> Letter:
        """
        Overwrite a letter's number with an arbitrary string.

        The value is stored as given: it may use any format and may point at
        a different scope than the letter's own type and month. It only has
        to be unused by every other letter.
        """
        if new_number is None or not new_number.strip():
            raise InvalidInputError("Letter number is required", field="letter_number")

        store = LetterStore(db)
        letter = await store.get_or_raise(letter_id)
        if letter.status not in NUMBERED_STATUSES:
            raise InvalidStateError(
                "Only approved or completed letters can carry a number",
                current_status=letter.status.value,
            )

        holder = await store.holder_of(new_number, exclude_id=letter_id)
        if holder is not None:
            raise LetterNumberConflictError(new_number)

        previous = letter.letter_number
        letter = await store.update(letter, letter_number=new_number, numbering_error=None)
        logger.log_numbering_event(
            "edited",
            letter_id=letter_id,
            letter_number=new_number,
            previous_number=previous,
        )
        return letter

    async def get_statistics(self, db: AsyncSession, year: Optional[int] = None) -> dict:
        """
        Per-type counts of numbered letters for one year.

        Letters are selected by the year prefix of their number and grouped
        by the letter's own type, so an edited number pointing at another
        type's scope is counted under the letter's type. ``last_number`` is
        the highest numeric fourth segment seen for the type, or None.
        """
        if year is None:
            year = self.clock().year

        store = LetterStore(db)
        rows = await store.numbered_types_with_prefix(f"{year}/")

        by_type: Dict[str, dict] = {}
        for letter_type, letter_number in rows:
            entry = by_type.setdefault(letter_type, {"count": 0, "last_number": None})
            entry["count"] += 1
            sequence = parse_statistics_sequence(letter_number)
            if sequence is not None and (entry["last_number"] is None or sequence > entry["last_number"]):
                entry["last_number"] = sequence

        return {"year": year, "total_letters": len(rows), "by_type": by_type}

    @staticmethod
    def _check_assignable(letter: Letter) -> None:
        if letter.status != LetterStatus.APPROVED:
            raise InvalidStateError(
                "Only approved letters can be assigned a number",
                current_status=letter.status.value,
            )
        if letter.letter_number is not None:
            raise InvalidStateError(
                "Letter already has a number assigned",
                current_status=letter.status.value,
            )


# Singleton instance
letter_numbering_service = LetterNumberingService()

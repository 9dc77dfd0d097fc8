"""Form number and version allocation.

Numbers look like ``SF-2025-00001``; each regeneration appends a version
suffix to the base number (``SF-2025-00001-v1``, ``-v2``, ...).

Values are issued from named counters in ``number_sequences``. Each
allocation increments its counter under a row lock in a short transaction of
its own, so two concurrent allocations can never observe the same value. A
counter that does not exist yet is seeded from a scan of existing form
numbers, which keeps numbering monotonic for data written before the
counter table existed.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from labforms.core.config import settings
from labforms.core.exceptions import DatabaseError
from labforms.repositories.sequence_repository import SequenceRepository
from labforms.repositories.service_form_repository import ServiceFormRepository
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)

SEQUENCE_WIDTH = 5
VERSION_SUFFIX = re.compile(r"-v(\d+)$")


def format_form_number(prefix: str, year: int, sequence: int) -> str:
    return f"{prefix}-{year}-{sequence:0{SEQUENCE_WIDTH}d}"


def year_prefix(prefix: str, year: int) -> str:
    """Literal prefix shared by every number issued in ``year``."""
    return f"{prefix}-{year}-"


def strip_version_suffix(number: str) -> str:
    return VERSION_SUFFIX.sub("", number)


def parse_version_suffix(number: str) -> int:
    """Version encoded in ``number``; 0 when it has no suffix."""
    match = VERSION_SUFFIX.search(number)
    return int(match.group(1)) if match else 0


def next_sequence_from_numbers(numbers: Iterable[str], prefix: str) -> int:
    """Next yearly sequence after the highest one found among ``numbers``.

    Args:
        numbers: Existing form numbers, versioned or not
        prefix: Year prefix such as ``SF-2025-``

    Returns:
        max + 1, or 1 when no number carries the prefix
    """
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    highest = 0
    for number in numbers:
        match = pattern.match(strip_version_suffix(number))
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def next_version_from_numbers(numbers: Iterable[str], base: str) -> int:
    """Next version suffix for ``base``; 1 when only the base exists."""
    highest = 0
    for number in numbers:
        if strip_version_suffix(number) == base:
            highest = max(highest, parse_version_suffix(number))
    return highest + 1


@dataclass(frozen=True)
class AllocatedNumber:
    number: str
    base: str
    version: int


class NumberAllocator:
    """Issues unique form numbers and version suffixes."""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        prefix: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_maker = session_maker
        self.prefix = prefix or settings.documents.form_number_prefix
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def allocate_initial(self) -> AllocatedNumber:
        """Allocate the next yearly form number."""
        year = self.clock().year
        prefix = year_prefix(self.prefix, year)

        async def seed(session: AsyncSession) -> int:
            numbers = await ServiceFormRepository(session).list_numbers_with_prefix(prefix)
            return next_sequence_from_numbers(numbers, prefix) - 1

        sequence = await self._next_value(f"form-number:{self.prefix}-{year}", seed)
        number = format_form_number(self.prefix, year, sequence)
        LOGGER.info("Allocated form number", extra={"form_number": number})
        return AllocatedNumber(number=number, base=number, version=0)

    async def allocate_version(self, current_number: str) -> AllocatedNumber:
        """Allocate the next version of the base number behind ``current_number``."""
        base = strip_version_suffix(current_number)

        async def seed(session: AsyncSession) -> int:
            numbers = await ServiceFormRepository(session).list_numbers_with_prefix(base)
            return next_version_from_numbers(numbers, base) - 1

        version = await self._next_value(f"form-version:{base}", seed)
        number = f"{base}-v{version}"
        LOGGER.info(
            "Allocated form version",
            extra={"form_number": number, "previous_form_number": current_number}
        )
        return AllocatedNumber(number=number, base=base, version=version)

    async def _next_value(
        self,
        name: str,
        seed: Callable[[AsyncSession], Awaitable[int]],
        attempts: int = 2,
    ) -> int:
        """Increment counter ``name`` and return the new value.

        A concurrent first use of the same counter makes one insert fail on
        the primary key; the loser retries and finds the row.
        """
        for attempt in range(1, attempts + 1):
            try:
                async with self.session_maker() as session:
                    async with session.begin():
                        repo = SequenceRepository(session)
                        sequence = await repo.get_for_update(name)
                        if sequence is None:
                            sequence = await repo.insert(name, await seed(session))
                        return await repo.advance(sequence)
            except IntegrityError as e:
                if attempt == attempts:
                    raise DatabaseError(
                        f"Could not allocate a value from sequence {name}", original_error=e
                    ) from e
                LOGGER.warning(
                    "Sequence was created concurrently, retrying",
                    extra={"sequence": name, "attempt": attempt}
                )
        raise DatabaseError(f"Could not allocate a value from sequence {name}")

"""
Repository for survey participant records.
"""

from typing import Protocol, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ivr_survey.participants.models import Participant
from ivr_survey.participants.schemas import SurveyResponse
from ivr_survey.shared.exceptions import (
    ConcurrentUpdateError,
    DuplicateParticipantError,
    StoreUnavailableError,
    StoreWriteError,
)
from ivr_survey.shared.logging import get_logger

logger = get_logger(__name__)


class ParticipantRepositoryProtocol(Protocol):
    """Protocol for participant store operations."""

    async def find_by_call_id(self, call_id: str) -> Participant | None:
        """Get participant by call id, None on miss."""
        ...

    async def insert(self, call_id: str, number: str | None) -> Participant:
        """Create a participant with no responses."""
        ...

    async def append_response(
        self,
        participant: Participant,
        response: SurveyResponse,
    ) -> Participant:
        """Append one response if the stored record still matches ``participant``."""
        ...

    async def list_all(self) -> Sequence[Participant]:
        """Get every participant in creation order."""
        ...

    async def commit(self) -> None:
        """Commit pending writes."""
        ...


class ParticipantRepository:
    """SQLAlchemy-backed participant store."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def find_by_call_id(self, call_id: str) -> Participant | None:
        """Get participant by call id.

        Args:
            call_id: Telephony call identifier.

        Returns:
            Participant if found, None otherwise.

        Raises:
            StoreUnavailableError: If the database cannot be queried.
        """
        stmt = (
            select(Participant)
            .where(Participant.call_id == call_id)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreUnavailableError(f"Participant lookup failed: {e}") from e
        return result.scalar_one_or_none()

    async def insert(self, call_id: str, number: str | None) -> Participant:
        """Create a participant with an empty response list.

        Raises:
            DuplicateParticipantError: If the call id already exists.
            StoreWriteError: On any other database failure.
        """
        participant = Participant(
            call_id=call_id,
            number=number,
            responses=[],
            answered_count=0,
        )
        self._session.add(participant)
        try:
            await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise DuplicateParticipantError(call_id) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreWriteError(f"Participant insert failed: {e}") from e

        logger.info(
            "Created survey participant",
            extra={"call_id": call_id, "number": number},
        )
        return participant

    async def append_response(
        self,
        participant: Participant,
        response: SurveyResponse,
    ) -> Participant:
        """Append a response with a single conditional update.

        ``participant`` is the record as last read. The update only applies
        while the stored ``answered_count`` still equals the one read, so two
        concurrent callbacks for the same call cannot both append. No read
        is issued; the appended values are written back onto ``participant``.

        Args:
            participant: Record previously returned by this repository.
            response: Answer to append.

        Returns:
            The same participant carrying the appended response.

        Raises:
            ConcurrentUpdateError: If the record changed since it was read.
            StoreWriteError: On any other database failure.
        """
        call_id = participant.call_id
        expected_count = participant.answered_count
        new_responses = [*participant.responses, response.to_document()]
        stmt = (
            update(Participant)
            .where(
                Participant.call_id == call_id,
                Participant.answered_count == expected_count,
            )
            .values(
                responses=new_responses,
                answered_count=expected_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreWriteError(f"Participant update failed: {e}") from e

        if result.rowcount == 0:
            raise ConcurrentUpdateError(call_id, expected_count)

        # Mirror the row without marking the instance dirty.
        set_committed_value(participant, "responses", new_responses)
        set_committed_value(participant, "answered_count", expected_count + 1)
        logger.info(
            "Updated survey participant",
            extra={
                "call_id": call_id,
                "answered_count": participant.answered_count,
                "recording_id": response.recording_id,
            },
        )
        return participant

    async def list_all(self) -> Sequence[Participant]:
        """Get every participant ordered by creation.

        Raises:
            StoreUnavailableError: If the database cannot be queried.
        """
        stmt = select(Participant).order_by(Participant.created_at, Participant.id)
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreUnavailableError(f"Participant scan failed: {e}") from e
        return result.scalars().all()

    async def commit(self) -> None:
        """Commit pending writes.

        Raises:
            StoreWriteError: If the commit fails.
        """
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreWriteError(f"Commit failed: {e}") from e

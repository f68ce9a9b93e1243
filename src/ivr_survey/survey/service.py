"""
Survey call-step handling.

Loads (or lazily creates) the participant for a call, stores the answer that
arrived with the callback and composes the next call flow.
"""

from __future__ import annotations

import asyncio
import weakref

from ivr_survey.flow.composer import VoiceOptions, compose_flow, fallback_flow, is_complete
from ivr_survey.flow.models import CallFlow
from ivr_survey.participants.repository import ParticipantRepositoryProtocol
from ivr_survey.participants.schemas import RecordingRef
from ivr_survey.shared.exceptions import (
    ConcurrentUpdateError,
    DuplicateParticipantError,
    StoreUnavailableError,
    SurveyStoreError,
)
from ivr_survey.shared.logging import get_logger
from ivr_survey.survey.questions import QuestionCatalog

logger = get_logger(__name__)

# Per-call lock so that retried recording callbacks for one call run one at a time.
# Entries disappear once no callback holds or awaits the lock.
_LOCKS: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _get_lock(key: str) -> asyncio.Lock:
    lock = _LOCKS.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _LOCKS[key] = lock
    return lock


class SurveyCallService:
    """Drives one participant through the question catalog.

    Each callback performs one store read, at most one insert (first
    contact) and at most one append (every later contact).
    """

    def __init__(
        self,
        repository: ParticipantRepositoryProtocol,
        catalog: QuestionCatalog,
        voice: VoiceOptions | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            repository: Participant store.
            catalog: Question catalog.
            voice: Voice/recording parameters for emitted steps.
        """
        self._repository = repository
        self._catalog = catalog
        self._voice = voice or VoiceOptions()

    async def handle_call_step(
        self,
        call_id: str,
        destination: str | None,
        recording: RecordingRef | None,
        callback_url: str,
    ) -> CallFlow:
        """Process one callback and return the flow the platform runs next.

        Failures never reach the caller: store errors and anything unexpected
        are logged and answered with an apology flow, so the call is never
        left without instructions.

        Args:
            call_id: Telephony call identifier.
            destination: Number the survey call was placed to.
            recording: Recording that just finished, None on first contact.
            callback_url: URL for the next recording's ``onFinish``.

        Returns:
            The next CallFlow.
        """
        async with _get_lock(call_id):
            try:
                answered_count = await self._advance(call_id, destination, recording)
            except SurveyStoreError:
                logger.exception(
                    "Survey store failure, returning fallback flow",
                    extra={"call_id": call_id},
                )
                return fallback_flow(self._voice)
            # A callback must never leave the call without a flow.
            except Exception:
                logger.exception(
                    "Unexpected call-step failure, returning fallback flow",
                    extra={"call_id": call_id},
                )
                return fallback_flow(self._voice)

        flow = compose_flow(self._catalog, answered_count, callback_url, self._voice)
        logger.info(
            "Composed call step",
            extra={
                "call_id": call_id,
                "answered_count": answered_count,
                "question_count": len(self._catalog),
                "steps": [step.action for step in flow.steps],
            },
        )
        return flow

    async def _advance(
        self,
        call_id: str,
        destination: str | None,
        recording: RecordingRef | None,
    ) -> int:
        """Persist the callback and return the updated answered-count."""
        participant = await self._repository.find_by_call_id(call_id)

        if participant is None:
            try:
                await self._repository.insert(call_id, destination)
                await self._repository.commit()
                return 0
            except DuplicateParticipantError:
                logger.info(
                    "Participant created by a concurrent callback",
                    extra={"call_id": call_id},
                )
                participant = await self._repository.find_by_call_id(call_id)
                if participant is None:
                    raise StoreUnavailableError(
                        f"Participant {call_id} vanished after duplicate insert"
                    )

        answered_count = participant.answered_count

        if is_complete(self._catalog, answered_count):
            logger.info(
                "Callback for completed survey ignored",
                extra={"call_id": call_id, "answered_count": answered_count},
            )
            return answered_count

        if recording is None:
            logger.warning(
                "Callback without recording identifiers, repeating question",
                extra={"call_id": call_id, "answered_count": answered_count},
            )
            return answered_count

        if participant.responses and (
            participant.responses[-1].get("recordingId") == recording.recording_id
        ):
            logger.info(
                "Duplicate recording callback ignored",
                extra={"call_id": call_id, "recording_id": recording.recording_id},
            )
            return answered_count

        try:
            participant = await self._repository.append_response(
                participant,
                recording.to_response(),
            )
            await self._repository.commit()
        except ConcurrentUpdateError:
            logger.warning(
                "Concurrent answer for call, keeping stored state",
                extra={"call_id": call_id, "expected_count": answered_count},
            )
            participant = await self._repository.find_by_call_id(call_id)
            if participant is None:
                raise StoreUnavailableError(f"Participant {call_id} vanished")

        return participant.answered_count

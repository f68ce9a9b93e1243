"""
Tests for the survey call-step service.
"""

import asyncio

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession

from ivr_survey.flow.composer import COMPLETED_MESSAGE, FALLBACK_MESSAGE
from ivr_survey.participants.models import Participant
from ivr_survey.participants.repository import ParticipantRepository
from ivr_survey.participants.schemas import RecordingRef
from ivr_survey.shared.database import DatabaseManager
from ivr_survey.shared.exceptions import StoreUnavailableError, StoreWriteError
from ivr_survey.survey.questions import QuestionCatalog
from ivr_survey.survey.service import SurveyCallService

CALLBACK = "https://survey.example.com/callStep"


def _payloads(flow) -> list[str]:
    return [step.options.payload for step in flow.say_steps]


class FailingRepository:
    """Participant store whose reads or writes always fail."""

    def __init__(self, fail_reads: bool = True) -> None:
        self.fail_reads = fail_reads

    async def find_by_call_id(self, call_id):
        if self.fail_reads:
            raise StoreUnavailableError("database is down")
        return None

    async def insert(self, call_id, number):
        raise StoreWriteError("disk full")

    async def append_response(self, participant, response):
        raise StoreWriteError("disk full")

    async def list_all(self):
        return []

    async def commit(self):
        return None


class BrokenRepository(FailingRepository):
    """Participant store that fails with a non-store error."""

    async def find_by_call_id(self, call_id):
        raise RuntimeError("driver bug")


@pytest.fixture
def service(repository: ParticipantRepository, catalog: QuestionCatalog) -> SurveyCallService:
    """Create service instance."""
    return SurveyCallService(repository=repository, catalog=catalog)


class TestSurveyCallService:
    """Tests for SurveyCallService."""

    @pytest.mark.asyncio
    async def test_full_survey_progression(
        self,
        service: SurveyCallService,
        repository: ParticipantRepository,
    ) -> None:
        """Test first contact, one answer per question, then completion."""
        first = await service.handle_call_step("c1", "+3161", None, CALLBACK)

        record = await repository.find_by_call_id("c1")
        assert record is not None
        assert record.responses == []
        assert record.number == "+3161"
        assert [s.action for s in first.steps] == ["say", "say", "record"]
        assert _payloads(first)[1] == "Q1"

        second = await service.handle_call_step(
            "c1", "+3161", RecordingRef(leg_id="L1", recording_id="R1"), CALLBACK
        )

        record = await repository.find_by_call_id("c1")
        assert record.responses == [{"legId": "L1", "recordingId": "R1"}]
        assert _payloads(second) == ["Q2"]
        assert len(second.record_steps) == 1

        third = await service.handle_call_step(
            "c1", "+3161", RecordingRef(leg_id="L2", recording_id="R2"), CALLBACK
        )

        record = await repository.find_by_call_id("c1")
        assert record.answered_count == 2
        assert _payloads(third) == [COMPLETED_MESSAGE]
        assert third.record_steps == []

    @pytest.mark.asyncio
    async def test_answer_callback_reads_store_once(
        self,
        db_manager: DatabaseManager,
        service: SurveyCallService,
    ) -> None:
        """Test an answer callback costs one read and one write."""
        await service.handle_call_step("c1", None, None, CALLBACK)

        statements: list[str] = []

        def record(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement.split(None, 1)[0].upper())

        sync_engine = db_manager.engine.sync_engine
        event.listen(sync_engine, "before_cursor_execute", record)
        try:
            flow = await service.handle_call_step(
                "c1", None, RecordingRef(leg_id="L1", recording_id="R1"), CALLBACK
            )
        finally:
            event.remove(sync_engine, "before_cursor_execute", record)

        assert statements == ["SELECT", "UPDATE"]
        assert _payloads(flow) == ["Q2"]

    @pytest.mark.asyncio
    async def test_first_contact_ignores_answer_payload(
        self,
        service: SurveyCallService,
        repository: ParticipantRepository,
    ) -> None:
        """Test recording ids on first contact are not stored."""
        flow = await service.handle_call_step(
            "c1", None, RecordingRef(leg_id="L0", recording_id="R0"), CALLBACK
        )

        record = await repository.find_by_call_id("c1")
        assert record.responses == []
        assert _payloads(flow)[1] == "Q1"

    @pytest.mark.asyncio
    async def test_duplicate_recording_callback_not_appended_twice(
        self,
        service: SurveyCallService,
        repository: ParticipantRepository,
    ) -> None:
        """Test a retried recording callback is stored once."""
        await service.handle_call_step("c1", None, None, CALLBACK)
        answer = RecordingRef(leg_id="L1", recording_id="R1")

        await service.handle_call_step("c1", None, answer, CALLBACK)
        retried = await service.handle_call_step("c1", None, answer, CALLBACK)

        record = await repository.find_by_call_id("c1")
        assert record.answered_count == 1
        assert _payloads(retried) == ["Q2"]

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_callbacks_append_once(
        self,
        service: SurveyCallService,
        repository: ParticipantRepository,
    ) -> None:
        """Test concurrent identical callbacks append a single answer."""
        await service.handle_call_step("c1", None, None, CALLBACK)
        answer = RecordingRef(leg_id="L1", recording_id="R1")

        flows = await asyncio.gather(
            service.handle_call_step("c1", None, answer, CALLBACK),
            service.handle_call_step("c1", None, answer, CALLBACK),
        )

        record = await repository.find_by_call_id("c1")
        assert record.answered_count == 1
        assert all(_payloads(flow) == ["Q2"] for flow in flows)

    @pytest.mark.asyncio
    async def test_existing_record_without_answer_repeats_question(
        self,
        service: SurveyCallService,
        repository: ParticipantRepository,
    ) -> None:
        """Test a callback without recording ids repeats the question."""
        await service.handle_call_step("c1", None, None, CALLBACK)
        await service.handle_call_step(
            "c1", None, RecordingRef(leg_id="L1", recording_id="R1"), CALLBACK
        )

        flow = await service.handle_call_step("c1", None, None, CALLBACK)

        record = await repository.find_by_call_id("c1")
        assert record.answered_count == 1
        assert _payloads(flow) == ["Q2"]

    @pytest.mark.asyncio
    async def test_callbacks_after_completion_do_not_append(
        self,
        service: SurveyCallService,
        repository: ParticipantRepository,
    ) -> None:
        """Test a completed survey is never appended to."""
        await service.handle_call_step("c1", None, None, CALLBACK)
        for i in (1, 2, 3):
            flow = await service.handle_call_step(
                "c1", None, RecordingRef(leg_id=f"L{i}", recording_id=f"R{i}"), CALLBACK
            )

        record = await repository.find_by_call_id("c1")
        assert record.answered_count == 2
        assert _payloads(flow) == [COMPLETED_MESSAGE]

    @pytest.mark.asyncio
    async def test_records_keyed_by_call_id_not_number(
        self,
        service: SurveyCallService,
        repository: ParticipantRepository,
    ) -> None:
        """Test two calls to the same number keep separate records."""
        await service.handle_call_step("c1", "+3161", None, CALLBACK)
        await service.handle_call_step("c2", "+3161", None, CALLBACK)

        await service.handle_call_step(
            "c2", "+3161", RecordingRef(leg_id="L1", recording_id="R1"), CALLBACK
        )

        assert (await repository.find_by_call_id("c1")).answered_count == 0
        assert (await repository.find_by_call_id("c2")).answered_count == 1

    @pytest.mark.asyncio
    async def test_store_read_failure_returns_fallback_flow(
        self,
        catalog: QuestionCatalog,
    ) -> None:
        """Test a failed lookup yields the apology flow."""
        service = SurveyCallService(repository=FailingRepository(), catalog=catalog)

        flow = await service.handle_call_step("c1", None, None, CALLBACK)

        assert _payloads(flow) == [FALLBACK_MESSAGE]
        assert flow.record_steps == []

    @pytest.mark.asyncio
    async def test_store_write_failure_returns_fallback_flow(
        self,
        catalog: QuestionCatalog,
    ) -> None:
        """Test a failed insert yields the apology flow."""
        service = SurveyCallService(
            repository=FailingRepository(fail_reads=False),
            catalog=catalog,
        )

        flow = await service.handle_call_step("c1", None, None, CALLBACK)

        assert _payloads(flow) == [FALLBACK_MESSAGE]

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_fallback_flow(
        self,
        catalog: QuestionCatalog,
    ) -> None:
        """Test a non-store error still yields the apology flow."""
        service = SurveyCallService(repository=BrokenRepository(), catalog=catalog)

        flow = await service.handle_call_step("c1", None, None, CALLBACK)

        assert _payloads(flow) == [FALLBACK_MESSAGE]

    @pytest.mark.asyncio
    async def test_malformed_stored_responses_return_fallback_flow(
        self,
        db_session: AsyncSession,
        service: SurveyCallService,
    ) -> None:
        """Test a record holding non-object responses yields the apology flow."""
        db_session.add(Participant(call_id="c1", responses=["legacy"], answered_count=1))
        await db_session.commit()

        flow = await service.handle_call_step(
            "c1", None, RecordingRef(leg_id="L", recording_id="R"), CALLBACK
        )

        assert _payloads(flow) == [FALLBACK_MESSAGE]

"""
FastAPI dependencies.

Long-lived objects (settings, catalog, database manager, voice API client)
are built once by ``create_app`` and kept on ``app.state``.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ivr_survey.config import Settings
from ivr_survey.flow.composer import VoiceOptions
from ivr_survey.participants.repository import ParticipantRepository
from ivr_survey.recordings.client import RecordingClient
from ivr_survey.shared.database import get_db_session
from ivr_survey.survey.questions import QuestionCatalog
from ivr_survey.survey.service import SurveyCallService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_catalog(request: Request) -> QuestionCatalog:
    return request.app.state.catalog


def get_recording_client(request: Request) -> RecordingClient:
    return request.app.state.recordings


def get_participant_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ParticipantRepository:
    return ParticipantRepository(session=session)


def get_survey_service(
    repository: Annotated[ParticipantRepository, Depends(get_participant_repository)],
    catalog: Annotated[QuestionCatalog, Depends(get_catalog)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> SurveyCallService:
    return SurveyCallService(
        repository=repository,
        catalog=catalog,
        voice=VoiceOptions.from_settings(settings),
    )

"""
Pytest configuration and fixtures.
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from ivr_survey.config import Settings
from ivr_survey.main import create_app
from ivr_survey.participants.repository import ParticipantRepository
from ivr_survey.recordings.client import RecordingClient
from ivr_survey.shared.database import DatabaseManager
from ivr_survey.survey.questions import QuestionCatalog

VOICE_API_BASE_URL = "https://voice.example.test"
PUBLIC_BASE_URL = "https://survey.example.com"


@dataclass
class FakeVoiceApi:
    """In-process stand-in for the voice API recordings endpoint."""

    status_code: int = 200
    body: bytes = b"RIFF\x00\x00\x00\x00WAVEfmt "
    fail_with: Exception | None = None
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        return httpx.Response(
            self.status_code,
            content=self.body,
            headers={"content-type": "audio/wav"},
        )


@pytest.fixture
def catalog() -> QuestionCatalog:
    """Two-question catalog."""
    return QuestionCatalog.from_sequence(["Q1", "Q2"])


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        _env_file=None,
        app_env="dev",
        debug=False,
        database_url="sqlite+aiosqlite:///:memory:",
        database_auto_create=True,
        voice_api_key="test-access-key",
        voice_api_base_url=VOICE_API_BASE_URL,
        public_base_url=PUBLIC_BASE_URL,
    )


@pytest_asyncio.fixture
async def db_manager(test_settings: Settings) -> AsyncGenerator[DatabaseManager, None]:
    """In-memory database with all tables created."""
    manager = DatabaseManager(test_settings.database_url)
    await manager.create_all()
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def db_session(db_manager: DatabaseManager) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with db_manager.session_factory() as session:
        yield session


@pytest.fixture
def repository(db_session: AsyncSession) -> ParticipantRepository:
    """Create repository instance."""
    return ParticipantRepository(session=db_session)


@pytest.fixture
def voice_api() -> FakeVoiceApi:
    """Fake voice API answering recording downloads."""
    return FakeVoiceApi()


@pytest_asyncio.fixture
async def recording_client(
    test_settings: Settings,
    voice_api: FakeVoiceApi,
) -> AsyncGenerator[RecordingClient, None]:
    """Recording client wired to the fake voice API."""
    client = RecordingClient(
        base_url=test_settings.voice_api_base_url,
        api_key=test_settings.voice_api_key,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(voice_api.handler)),
    )
    yield client
    await client.aclose()


@pytest.fixture
def app(
    test_settings: Settings,
    catalog: QuestionCatalog,
    db_manager: DatabaseManager,
    recording_client: RecordingClient,
) -> FastAPI:
    """Create application bound to the test database."""
    application = create_app(
        settings=test_settings,
        catalog=catalog,
        recording_client=recording_client,
    )
    # ASGITransport does not run the lifespan; share the prepared database.
    application.state.db = db_manager
    return application


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

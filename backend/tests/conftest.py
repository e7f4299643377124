import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from visitflow import models  # noqa: E402,F401  registers tables
from visitflow.api.deps import get_notifier, get_transcription_client  # noqa: E402
from visitflow.core.database import Base, build_engine, get_db  # noqa: E402
from visitflow.core.security import create_access_token  # noqa: E402
from visitflow.main import create_application  # noqa: E402
from visitflow.models import (  # noqa: E402
    Action,
    Medication,
    MedicationReminder,
    Nudge,
    NudgeStatus,
    ProcessingStatus,
    Visit,
)
from visitflow.services.transcription import (  # noqa: E402
    Transcript,
    TranscriptionServiceError,
    format_transcript,
)


VISIT_SECRET = "test-visit-secret"
USER_ID = "user-1"
OTHER_USER_ID = "user-2"
BASE_TIME = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


def build_session_factory(url: str = "sqlite+pysqlite:///:memory:"):
    if url.endswith(":memory:"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
    else:
        engine = build_engine(url)
    Base.metadata.create_all(engine)
    return engine, sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


# =============================================================================
# Fakes
# =============================================================================

class FakeTranscriptionClient:
    """Serves canned transcripts keyed by id."""

    def __init__(self) -> None:
        self.transcripts: Dict[str, Transcript] = {}
        self.failures: Dict[str, TranscriptionServiceError] = {}
        self.requested: List[str] = []

    def add(self, transcript: Transcript) -> None:
        self.transcripts[transcript.id] = transcript

    def get_transcript(self, transcript_id: str) -> Transcript:
        self.requested.append(transcript_id)
        if transcript_id in self.failures:
            raise self.failures[transcript_id]
        if transcript_id not in self.transcripts:
            raise TranscriptionServiceError(f"Transcript not found: {transcript_id}", 404)
        return self.transcripts[transcript_id]

    def format_transcript(self, utterances, fallback_text: str = "") -> str:
        return format_transcript(utterances, fallback_text)


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.fail = False

    def notify_visit_ready(self, user_id: str, visit_id: str, pending_actions: int):
        self.calls.append((user_id, visit_id, pending_actions))
        if self.fail:
            raise RuntimeError("push gateway unavailable")
        return {"success": True}


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def engine_and_factory():
    engine, factory = build_session_factory()
    try:
        yield engine, factory
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def db_session(engine_and_factory) -> Iterator[Session]:
    _, factory = engine_and_factory
    session = factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def transcription_client() -> FakeTranscriptionClient:
    return FakeTranscriptionClient()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def app(db_session, transcription_client, notifier):
    application = create_application(
        visit_webhook_secret=VISIT_SECRET,
        transcription_webhook_secret="",
    )

    def _get_db():
        yield db_session

    application.dependency_overrides[get_db] = _get_db
    application.dependency_overrides[get_transcription_client] = lambda: transcription_client
    application.dependency_overrides[get_notifier] = lambda: notifier
    return application


@pytest.fixture
def client(app) -> TestClient:
    # lifespan is not entered, so logging and table setup stay test-controlled
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = USER_ID) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}
    return _headers


# =============================================================================
# Record Factories
# =============================================================================

@pytest.fixture
def make_visit(db_session):
    def _make(owner_id: str = USER_ID, **fields) -> Visit:
        fields.setdefault("processing_status", ProcessingStatus.PENDING)
        fields.setdefault("created_at", BASE_TIME)
        fields.setdefault("updated_at", fields["created_at"])
        visit = Visit(owner_id=owner_id, **fields)
        db_session.add(visit)
        db_session.commit()
        return visit
    return _make


@pytest.fixture
def make_action(db_session):
    def _make(owner_id: str = USER_ID, visit_id: Optional[str] = None, **fields) -> Action:
        fields.setdefault("description", "Follow up")
        fields.setdefault("created_at", BASE_TIME)
        fields.setdefault("updated_at", fields["created_at"])
        action = Action(owner_id=owner_id, visit_id=visit_id, **fields)
        db_session.add(action)
        db_session.commit()
        return action
    return _make


@pytest.fixture
def make_medication(db_session):
    def _make(owner_id: str = USER_ID, **fields) -> Medication:
        fields.setdefault("name", "Lisinopril")
        fields.setdefault("created_at", BASE_TIME)
        fields.setdefault("updated_at", fields["created_at"])
        medication = Medication(owner_id=owner_id, **fields)
        db_session.add(medication)
        db_session.commit()
        return medication
    return _make


@pytest.fixture
def make_reminder(db_session):
    def _make(medication: Medication, **fields) -> MedicationReminder:
        fields.setdefault("times", ["08:00"])
        fields.setdefault("created_at", BASE_TIME)
        fields.setdefault("updated_at", fields["created_at"])
        reminder = MedicationReminder(
            owner_id=fields.pop("owner_id", medication.owner_id),
            medication_id=medication.id,
            medication_name=medication.name,
            **fields,
        )
        db_session.add(reminder)
        db_session.commit()
        return reminder
    return _make


@pytest.fixture
def make_nudge(db_session):
    def _make(medication: Medication, **fields) -> Nudge:
        fields.setdefault("title", "Time for your medication")
        fields.setdefault("status", NudgeStatus.PENDING)
        fields.setdefault("created_at", BASE_TIME)
        fields.setdefault("updated_at", fields["created_at"])
        nudge = Nudge(owner_id=medication.owner_id, medication_id=medication.id, **fields)
        db_session.add(nudge)
        db_session.commit()
        return nudge
    return _make


def minutes(n: int) -> timedelta:
    return timedelta(minutes=n)

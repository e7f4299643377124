from datetime import timedelta

import pytest

from visitflow.core.database import utc_now
from visitflow.models import Action, AuthHandoff, ProcessingStatus, Visit
from visitflow.services.transcription import Transcript
from visitflow.tasks import maintenance

from conftest import USER_ID


@pytest.fixture
def task_sessions(engine_and_factory, monkeypatch):
    _, factory = engine_and_factory
    monkeypatch.setattr(maintenance, "get_db_session", factory)
    return factory


def test_poll_task_advances_completed_transcripts(
    task_sessions, make_visit, transcription_client, notifier, monkeypatch
):
    monkeypatch.setattr(maintenance, "AssemblyAIClient", lambda: transcription_client)
    monkeypatch.setattr(maintenance, "PushNotificationService", lambda: notifier)
    visit = make_visit(
        processing_status=ProcessingStatus.TRANSCRIBING,
        transcription_id="tx-9",
        transcription_submitted_at=utc_now(),
    )
    transcription_client.add(Transcript(id="tx-9", status="completed", text="Take it easy"))

    result = maintenance.poll_pending_transcriptions()

    assert result["checked"] == 1
    assert result["advanced"] == 1
    with task_sessions() as session:
        assert session.get(Visit, visit.id).processing_status == ProcessingStatus.SUMMARIZING


def test_purge_task_requeues_when_more_remain(task_sessions, make_action, monkeypatch):
    monkeypatch.setattr(maintenance.settings, "retention_purge_page_size", 1)
    queued = []
    monkeypatch.setattr(
        maintenance.purge_soft_deleted_records,
        "apply_async",
        lambda **kwargs: queued.append(kwargs),
    )
    long_ago = utc_now() - timedelta(days=365)
    for _ in range(2):
        make_action(deleted_at=long_ago, deleted_by=USER_ID)

    result = maintenance.purge_soft_deleted_records(retention_days=90, collections=["actions"])

    assert result["purged"] == 1
    assert result["has_more"] is True
    assert queued == [{"kwargs": {"retention_days": 90, "collections": ["actions"]}, "countdown": 5}]
    with task_sessions() as session:
        assert session.query(Action).count() == 1


def test_purge_task_stops_when_done(task_sessions, monkeypatch):
    queued = []
    monkeypatch.setattr(
        maintenance.purge_soft_deleted_records,
        "apply_async",
        lambda **kwargs: queued.append(kwargs),
    )

    result = maintenance.purge_soft_deleted_records(retention_days=90)

    assert result["purged"] == 0
    assert result["has_more"] is False
    assert queued == []


def test_purge_expired_handoffs_task(task_sessions, db_session):
    now = utc_now()
    db_session.add_all([
        AuthHandoff(code="expired", user_id=USER_ID, created_at=now - timedelta(hours=1),
                    expires_at=now - timedelta(minutes=55)),
        AuthHandoff(code="fresh", user_id=USER_ID, created_at=now,
                    expires_at=now + timedelta(minutes=5)),
    ])
    db_session.commit()

    result = maintenance.purge_expired_handoffs()

    assert result == {"purged": 1}
    with task_sessions() as session:
        assert [h.code for h in session.query(AuthHandoff).all()] == ["fresh"]

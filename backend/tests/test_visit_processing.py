from datetime import datetime, timedelta, timezone

import pytest

from visitflow.core.errors import VisitNotFoundError
from visitflow.models import Action, ProcessingStatus, Visit
from visitflow.repositories import ActionRepository, VisitRepository
from visitflow.services.transcription import Transcript, TranscriptionServiceError, Utterance
from visitflow.services.visit_processing import (
    ALREADY_PROCESSED_MESSAGE,
    MAX_RETRIES_MESSAGE,
    NextStep,
    ProcessedVisitUpdate,
    VisitProcessingService,
    timeout_message,
)

from conftest import BASE_TIME, USER_ID, VISIT_SECRET


VISIT_DATE = datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)
NOW = datetime(2026, 1, 2, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db_session, transcription_client, notifier):
    return VisitProcessingService(
        db_session,
        transcription_client=transcription_client,
        notifier=notifier,
    )


def _reload_visit(db_session, visit_id):
    return db_session.get(Visit, visit_id, populate_existing=True)


def _actions(db_session, visit_id):
    return ActionRepository(db_session).list_by_visit(visit_id, include_deleted=True)


# =============================================================================
# Processed results
# =============================================================================

def test_processed_result_replaces_actions(db_session, service, make_visit, make_action, notifier):
    visit = make_visit(processing_status=ProcessingStatus.SUMMARIZING, visit_date=VISIT_DATE)
    make_action(visit_id=visit.id, description="Stale action")

    result = service.apply_processed_result(ProcessedVisitUpdate(
        visit_id=visit.id,
        processing_status=ProcessingStatus.COMPLETED,
        summary="Routine check-up",
        diagnoses=["Hypertension"],
        next_steps=[
            NextStep("Clinic follow up — on March 10, 2026"),
            NextStep("Blood work", timeframe="in 2 weeks"),
            NextStep("Keep walking daily"),
        ],
    ), now=NOW)

    assert result.actions_created == 3
    actions = _actions(db_session, visit.id)
    assert [a.description for a in actions] == [
        "Clinic follow up — on March 10, 2026",
        "Blood work",
        "Keep walking daily",
    ]
    assert actions[0].due_at == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    assert actions[1].due_at == datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
    assert actions[2].due_at is None

    visit = _reload_visit(db_session, visit.id)
    assert visit.processing_status == ProcessingStatus.COMPLETED
    assert visit.summary == "Routine check-up"
    assert visit.next_steps == [a.description for a in actions]
    assert notifier.calls == [(USER_ID, visit.id, 3)]


def test_redelivery_does_not_duplicate_actions(db_session, service, make_visit):
    visit = make_visit(processing_status=ProcessingStatus.SUMMARIZING)
    update = ProcessedVisitUpdate(
        visit_id=visit.id,
        processing_status=ProcessingStatus.COMPLETED,
        next_steps=[NextStep("Labs"), NextStep("Physio")],
    )

    service.apply_processed_result(update, now=NOW)
    service.apply_processed_result(update, now=NOW + timedelta(minutes=1))

    assert len(_actions(db_session, visit.id)) == 2


def test_notification_failure_is_swallowed(db_session, service, make_visit, notifier):
    notifier.fail = True
    visit = make_visit(processing_status=ProcessingStatus.SUMMARIZING)

    result = service.apply_processed_result(ProcessedVisitUpdate(
        visit_id=visit.id,
        processing_status=ProcessingStatus.COMPLETED,
        next_steps=[NextStep("Labs")],
    ), now=NOW)

    assert result.notified is False
    assert len(_actions(db_session, visit.id)) == 1
    assert _reload_visit(db_session, visit.id).processing_status == ProcessingStatus.COMPLETED


def test_processed_result_unknown_visit(service):
    with pytest.raises(VisitNotFoundError) as exc_info:
        service.apply_processed_result(ProcessedVisitUpdate(
            visit_id="missing", processing_status=ProcessingStatus.COMPLETED))

    assert exc_info.value.details == {"visitId": "missing"}


# =============================================================================
# Transcription results
# =============================================================================

@pytest.fixture
def transcribing_visit(make_visit):
    return make_visit(
        processing_status=ProcessingStatus.TRANSCRIBING,
        transcription_id="tx-1",
        transcription_submitted_at=NOW - timedelta(minutes=5),
    )


def test_transcription_completed_moves_to_summarizing(
    db_session, service, transcribing_visit, transcription_client
):
    transcription_client.add(Transcript(
        id="tx-1",
        status="completed",
        text="Hello doctor",
        utterances=[
            Utterance(speaker="A", text="Hello doctor", start=0),
            Utterance(speaker="B", text="Hi there", start=65000),
        ],
    ))

    outcome = service.apply_transcription_result("tx-1", "completed", now=NOW)

    assert outcome.applied is True
    visit = _reload_visit(db_session, transcribing_visit.id)
    assert visit.processing_status == ProcessingStatus.SUMMARIZING
    assert visit.transcript == "[00:00] Speaker A: Hello doctor\n[01:05] Speaker B: Hi there"
    assert visit.transcript_text == "Hello doctor"
    assert visit.transcription_status == "completed"
    assert visit.webhook_triggered is True


def test_duplicate_transcription_delivery_is_noop(service, transcribing_visit, transcription_client):
    transcription_client.add(Transcript(id="tx-1", status="completed", text="Hi"))

    service.apply_transcription_result("tx-1", "completed", now=NOW)
    again = service.apply_transcription_result("tx-1", "completed", now=NOW)

    assert again.applied is False
    assert again.message == ALREADY_PROCESSED_MESSAGE


def test_transcription_error_fails_visit(db_session, service, transcribing_visit):
    outcome = service.apply_transcription_result("tx-1", "error", error="Audio too short", now=NOW)

    assert outcome.applied is True
    visit = _reload_visit(db_session, transcribing_visit.id)
    assert visit.processing_status == ProcessingStatus.FAILED
    assert visit.status == "failed"
    assert visit.transcription_status == "error"
    assert visit.processing_error == "Audio too short"


def test_processed_result_for_deleted_visit_is_not_found(db_session, service, make_visit, notifier):
    visit = make_visit(processing_status=ProcessingStatus.SUMMARIZING, deleted_at=BASE_TIME)

    with pytest.raises(VisitNotFoundError):
        service.apply_processed_result(ProcessedVisitUpdate(
            visit_id=visit.id,
            processing_status=ProcessingStatus.COMPLETED,
            next_steps=[NextStep("Labs")],
        ), now=NOW)

    assert ActionRepository(db_session).list_by_owner(USER_ID).items == []
    assert notifier.calls == []


def test_transcription_for_other_transcript_id_is_ignored(
    db_session, service, transcribing_visit, transcription_client
):
    transcription_client.add(Transcript(id="tx-other", status="completed", text="Hi"))

    outcome = service.apply_transcription_result("tx-other", "completed", now=NOW)

    assert outcome.applied is False
    assert outcome.message == ALREADY_PROCESSED_MESSAGE
    assert transcription_client.requested == []
    visit = _reload_visit(db_session, transcribing_visit.id)
    assert visit.processing_status == ProcessingStatus.TRANSCRIBING
    assert visit.transcription_id == "tx-1"


def test_guarded_update_requires_matching_transcription_id(db_session, transcribing_visit):
    repo = VisitRepository(db_session)
    values = {"processing_status": ProcessingStatus.FAILED}

    assert repo.guarded_update(
        transcribing_visit.id, ProcessingStatus.TRANSCRIBING, values, transcription_id="tx-2") is False
    assert repo.guarded_update(
        transcribing_visit.id, ProcessingStatus.TRANSCRIBING, values, transcription_id="tx-1") is True


def test_transcription_for_deleted_visit_is_ignored(service, make_visit, transcription_client):
    make_visit(
        processing_status=ProcessingStatus.TRANSCRIBING,
        transcription_id="tx-gone",
        deleted_at=BASE_TIME,
    )
    transcription_client.add(Transcript(id="tx-gone", status="completed", text="Hi"))

    outcome = service.apply_transcription_result("tx-gone", "completed", now=NOW)

    assert outcome.applied is False


# =============================================================================
# Backup poller
# =============================================================================

def test_poller_times_out_stale_transcription(db_session, service, make_visit, transcription_client):
    stale = make_visit(
        processing_status=ProcessingStatus.TRANSCRIBING,
        transcription_id="tx-stale",
        transcription_submitted_at=NOW - timedelta(minutes=61),
    )
    transcription_client.add(Transcript(id="tx-stale", status="processing"))

    summary = service.poll_pending_transcriptions(now=NOW, limit=10, timeout_minutes=60)

    assert summary.timed_out == 1
    visit = _reload_visit(db_session, stale.id)
    assert visit.processing_status == ProcessingStatus.FAILED
    assert visit.processing_error == timeout_message(60)
    assert visit.processing_error == "Transcription timed out after 60 minutes"


def test_poller_advances_completed_transcripts(
    db_session, service, transcribing_visit, transcription_client
):
    transcription_client.add(Transcript(id="tx-1", status="completed", text="All good"))

    summary = service.poll_pending_transcriptions(now=NOW)

    assert summary.advanced == 1
    visit = _reload_visit(db_session, transcribing_visit.id)
    assert visit.processing_status == ProcessingStatus.SUMMARIZING
    assert visit.webhook_triggered is False


def test_poller_fails_visits_over_max_retries(db_session, service, make_visit):
    visit = make_visit(processing_status=ProcessingStatus.TRANSCRIBING, retry_count=3)

    summary = service.poll_pending_transcriptions(now=NOW)

    assert summary.failed == 1
    assert _reload_visit(db_session, visit.id).processing_error == MAX_RETRIES_MESSAGE


def test_poller_tolerates_vendor_errors(service, transcribing_visit, transcription_client):
    transcription_client.failures["tx-1"] = TranscriptionServiceError("down", 503)

    summary = service.poll_pending_transcriptions(now=NOW)

    assert summary.errors == 1
    assert summary.failed == 0


# =============================================================================
# Webhook routes
# =============================================================================

def _processed_body(visit_id, **overrides):
    body = {
        "visitId": visit_id,
        "transcript": "[00:00] Speaker A: Hi",
        "summary": "Visit summary",
        "diagnoses": ["Asthma"],
        "medications": {"started": ["Albuterol"], "stopped": [], "changed": []},
        "imaging": [],
        "nextSteps": [
            "Recheck lungs — in 3 weeks",
            {"description": "Refill inhaler", "dueAt": "2026-02-15", "timeframe": "next month"},
        ],
        "processingStatus": "completed",
    }
    body.update(overrides)
    return body


def test_visit_processed_webhook(client, db_session, make_visit, notifier):
    visit = make_visit(processing_status=ProcessingStatus.SUMMARIZING, visit_date=VISIT_DATE)

    response = client.post(
        "/v1/webhooks/visit-processed",
        json=_processed_body(visit.id),
        headers={"X-Webhook-Secret": VISIT_SECRET},
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    actions = _actions(db_session, visit.id)
    assert len(actions) == 2
    assert actions[0].due_at == datetime(2026, 1, 22, 12, 0, tzinfo=timezone.utc)
    assert actions[1].due_at == datetime(2026, 2, 15, 12, 0, tzinfo=timezone.utc)
    assert len(notifier.calls) == 1


def test_visit_processed_accepts_signature_header(client, make_visit):
    visit = make_visit(processing_status=ProcessingStatus.SUMMARIZING)

    response = client.post(
        "/v1/webhooks/visit-processed",
        json=_processed_body(visit.id),
        headers={"X-Webhook-Signature": VISIT_SECRET},
    )

    assert response.status_code == 200


@pytest.mark.parametrize("secret", [None, "wrong", VISIT_SECRET + "x", VISIT_SECRET[:-1]])
def test_visit_processed_rejects_bad_secret(client, db_session, make_visit, secret):
    visit = make_visit(processing_status=ProcessingStatus.SUMMARIZING)
    headers = {"X-Webhook-Secret": secret} if secret else {}

    response = client.post("/v1/webhooks/visit-processed", json=_processed_body(visit.id), headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"
    assert _reload_visit(db_session, visit.id).processing_status == ProcessingStatus.SUMMARIZING


def test_bad_secret_wins_over_bad_payload(client):
    response = client.post(
        "/v1/webhooks/visit-processed",
        json={"nonsense": True},
        headers={"X-Webhook-Secret": "wrong"},
    )

    assert response.status_code == 401


def test_visit_processed_validation_error(client):
    response = client.post(
        "/v1/webhooks/visit-processed",
        json={"summary": "no id"},
        headers={"X-Webhook-Secret": VISIT_SECRET},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "validation_failed"
    assert any(detail["field"] == "visitId" for detail in body["details"])


def test_visit_processed_unknown_visit(client):
    response = client.post(
        "/v1/webhooks/visit-processed",
        json=_processed_body("missing-visit"),
        headers={"X-Webhook-Secret": VISIT_SECRET},
    )

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_transcription_webhook_routes(client, db_session, transcribing_visit, transcription_client):
    transcription_client.add(Transcript(id="tx-1", status="completed", text="Hi"))

    first = client.post(
        "/v1/webhooks/transcription-complete",
        json={"transcript_id": "tx-1", "status": "completed"},
    )
    duplicate = client.post(
        "/v1/webhooks/assemblyai/transcription-complete",
        json={"transcript_id": "tx-1", "status": "completed"},
    )

    assert first.status_code == 200
    assert first.json() == {"success": True, "visitId": transcribing_visit.id}
    assert duplicate.status_code == 200
    assert duplicate.json() == {"success": True, "message": ALREADY_PROCESSED_MESSAGE}


def test_transcription_webhook_checks_configured_secret(db_session, transcription_client, notifier):
    from fastapi.testclient import TestClient

    from visitflow.api.deps import get_notifier, get_transcription_client
    from visitflow.core.database import get_db
    from visitflow.main import create_application

    app = create_application(visit_webhook_secret=VISIT_SECRET, transcription_webhook_secret="aai-secret")
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_transcription_client] = lambda: transcription_client
    app.dependency_overrides[get_notifier] = lambda: notifier
    client = TestClient(app, raise_server_exceptions=False)
    body = {"transcript_id": "tx-unknown", "status": "error"}

    rejected = client.post("/v1/webhooks/transcription-complete", json=body)
    by_header = client.post(
        "/v1/webhooks/transcription-complete", json=body, headers={"X-AssemblyAI-Secret": "aai-secret"})
    by_query = client.post("/v1/webhooks/transcription-complete?secret=aai-secret", json=body)

    assert rejected.status_code == 401
    assert by_header.status_code == 200
    assert by_query.status_code == 200


def test_transcription_webhook_validates_status(client):
    response = client.post(
        "/v1/webhooks/transcription-complete",
        json={"transcript_id": "tx-1", "status": "queued"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_failed"

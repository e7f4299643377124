import threading
from datetime import timedelta

import pytest

from visitflow.core.database import to_millis, utc_now
from visitflow.core.security import decode_token
from visitflow.models import AuthHandoff
from visitflow.services.auth_handoff import AuthHandoffService, HandoffStatus

from conftest import BASE_TIME, USER_ID, build_session_factory


EXPIRES_AT = BASE_TIME + timedelta(minutes=5)


@pytest.fixture
def handoff(db_session):
    return AuthHandoffService(db_session).create("code-123", USER_ID, BASE_TIME, EXPIRES_AT)


def _reload(db_session, code):
    return db_session.get(AuthHandoff, code, populate_existing=True)


def test_exchange_succeeds_once(db_session, handoff):
    service = AuthHandoffService(db_session)
    used_at = BASE_TIME + timedelta(minutes=1)

    first = service.exchange("code-123", used_at, to_millis(used_at))
    second = service.exchange("code-123", used_at, to_millis(used_at))

    assert first.status == HandoffStatus.OK
    assert first.user_id == USER_ID
    assert second.status == HandoffStatus.USED
    assert second.user_id is None
    record = _reload(db_session, "code-123")
    assert record.used is True
    assert record.used_at == used_at


def test_unknown_code_is_invalid(db_session):
    result = AuthHandoffService(db_session).exchange("missing", BASE_TIME, to_millis(BASE_TIME))

    assert result.status == HandoffStatus.INVALID


def test_expired_code_is_deleted(db_session, handoff):
    late = EXPIRES_AT + timedelta(seconds=1)

    result = AuthHandoffService(db_session).exchange("code-123", late, to_millis(late))

    assert result.status == HandoffStatus.EXPIRED
    assert _reload(db_session, "code-123") is None

    again = AuthHandoffService(db_session).exchange("code-123", late, to_millis(late))

    assert again.status == HandoffStatus.INVALID
    assert again.user_id is None


def test_code_valid_at_exact_expiry(db_session, handoff):
    result = AuthHandoffService(db_session).exchange(
        "code-123", EXPIRES_AT, to_millis(EXPIRES_AT))

    assert result.status == HandoffStatus.OK


def test_issue_uses_configured_ttl(db_session):
    record = AuthHandoffService(db_session, ttl_seconds=120).issue(USER_ID, now=BASE_TIME)

    assert record.expires_at - record.created_at == timedelta(seconds=120)
    assert len(record.code) >= 32


def test_purge_expired(db_session, handoff):
    service = AuthHandoffService(db_session)
    service.create("fresh", USER_ID, BASE_TIME, BASE_TIME + timedelta(hours=2))

    purged = service.purge_expired(BASE_TIME + timedelta(hours=1))

    assert purged == 1
    assert _reload(db_session, "fresh") is not None


def test_concurrent_exchange_has_single_winner(tmp_path):
    engine, factory = build_session_factory(f"sqlite:///{tmp_path / 'handoff.db'}")
    try:
        setup = factory()
        AuthHandoffService(setup).create("race", USER_ID, BASE_TIME, EXPIRES_AT)
        setup.close()

        barrier = threading.Barrier(2)
        results = []
        errors = []

        def attempt():
            session = factory()
            try:
                barrier.wait()
                now = BASE_TIME + timedelta(minutes=1)
                results.append(AuthHandoffService(session).exchange("race", now, to_millis(now)))
            except Exception as e:  # pragma: no cover - surfaced by the assertion below
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert errors == []
        statuses = sorted(result.status.value for result in results)
        assert statuses == ["ok", "used"]
    finally:
        engine.dispose()


# =============================================================================
# Routes
# =============================================================================

def test_create_and_exchange_routes(client, auth_headers):
    created = client.post("/v1/auth/create-handoff", headers=auth_headers())
    assert created.status_code == 200
    code = created.json()["code"]
    assert "expiresAt" in created.json()

    exchanged = client.post("/v1/auth/exchange-handoff", json={"code": code})
    assert exchanged.status_code == 200
    payload = decode_token(exchanged.json()["token"])
    assert payload["sub"] == USER_ID

    reused = client.post("/v1/auth/exchange-handoff", json={"code": code})
    assert reused.status_code == 401
    assert reused.json() == {
        "success": False,
        "code": "unauthorized",
        "message": "Code has already been used",
    }


def test_exchange_route_rejects_unknown_code(client):
    response = client.post("/v1/auth/exchange-handoff", json={"code": "nope"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired code"


def test_exchange_route_reports_expired_code(client, db_session):
    issued_at = utc_now() - timedelta(minutes=10)
    AuthHandoffService(db_session).create("stale", USER_ID, issued_at, issued_at + timedelta(minutes=5))

    response = client.post("/v1/auth/exchange-handoff", json={"code": "stale"})

    assert response.status_code == 401
    assert response.json()["message"] == "Code has expired"


def test_exchange_route_validates_body(client):
    response = client.post("/v1/auth/exchange-handoff", json={})

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "validation_failed"
    assert body["details"][0]["field"] == "code"


def test_create_handoff_requires_token(client):
    response = client.post("/v1/auth/create-handoff")

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"

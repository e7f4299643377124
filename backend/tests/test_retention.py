from datetime import timedelta

import pytest

from visitflow.models import Action, Visit
from visitflow.services.retention import purge_soft_deleted_collections

from conftest import BASE_TIME, USER_ID


NOW = BASE_TIME + timedelta(days=200)


def _tombstone(db_session, record, days_ago):
    record.mark_deleted(USER_ID, NOW - timedelta(days=days_ago))
    db_session.commit()


def test_purges_only_old_tombstones(db_session, make_action, make_visit):
    old = make_action(description="old")
    recent = make_action(description="recent")
    live = make_action(description="live")
    old_visit = make_visit()
    _tombstone(db_session, old, 120)
    _tombstone(db_session, recent, 10)
    _tombstone(db_session, old_visit, 91)

    result = purge_soft_deleted_collections(db_session, retention_days=90, now=NOW)

    assert result.total_purged == 2
    assert result.per_collection["actions"] == 1
    assert result.per_collection["visits"] == 1
    assert result.has_more is False
    assert result.cutoff == NOW - timedelta(days=90)
    remaining = {a.description for a in db_session.query(Action).all()}
    assert remaining == {"recent", "live"}
    assert db_session.query(Visit).count() == 0


def test_page_size_caps_each_collection(db_session, make_action):
    for i in range(3):
        _tombstone(db_session, make_action(description=f"old {i}"), 100 + i)

    first = purge_soft_deleted_collections(
        db_session, retention_days=90, page_size=2, collections=["actions"], now=NOW)
    second = purge_soft_deleted_collections(
        db_session, retention_days=90, page_size=2, collections=["actions"], now=NOW)

    assert first.total_purged == 2
    assert first.has_more is True
    assert second.total_purged == 1
    assert second.has_more is False


def test_nothing_to_purge(db_session, make_action):
    make_action()

    result = purge_soft_deleted_collections(db_session, retention_days=90, now=NOW)

    assert result.total_scanned == 0
    assert result.total_purged == 0
    assert all(count == 0 for count in result.per_collection.values())


def test_unknown_collection_rejected(db_session):
    with pytest.raises(ValueError):
        purge_soft_deleted_collections(db_session, collections=["patients"], now=NOW)

"""Tests for syncing identity-provider users."""

from sqlalchemy import func, select

from app.database import User
from app.users import get_user, sync_user


def _count(db_session):
    return db_session.execute(select(func.count()).select_from(User)).scalar_one()


def test_sync_creates_user(db_session):
    new_id = sync_user(
        db_session,
        name="Sam Lee",
        email="sam@example.com",
        identity_id="user_123",
        image="https://img.example.com/sam.png",
    )

    assert new_id is not None
    user = get_user(db_session, "user_123")
    assert user.id == new_id
    assert user.image == "https://img.example.com/sam.png"
    assert user.created_at is not None


def test_sync_is_idempotent(db_session):
    first = sync_user(db_session, name="Sam", email="sam@example.com", identity_id="user_123")
    second = sync_user(db_session, name="Sam", email="sam@example.com", identity_id="user_123")

    assert first is not None
    assert second is None
    assert _count(db_session) == 1


def test_sync_ignores_changed_details(db_session):
    sync_user(db_session, name="Sam", email="sam@example.com", identity_id="user_123")
    sync_user(db_session, name="Samantha", email="new@example.com", identity_id="user_123")

    user = get_user(db_session, "user_123")
    assert user.name == "Sam"
    assert user.email == "sam@example.com"


def test_sync_does_not_validate_email(db_session):
    assert sync_user(db_session, name="X", email="not-an-email", identity_id="user_9") is not None


def test_get_user_unknown(db_session):
    assert get_user(db_session, "missing") is None

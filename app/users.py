"""User record sync keyed by the identity provider's user id."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import User

logger = logging.getLogger(__name__)


def get_user(session: Session, identity_id: str) -> Optional[User]:
    return session.execute(
        select(User).where(User.identity_id == identity_id)
    ).scalars().first()


def sync_user(
    session: Session,
    name: str,
    email: str,
    identity_id: str,
    image: Optional[str] = None,
) -> Optional[int]:
    """
    Insert the user on first sight; later calls are no-ops.

    Args:
        session: Open database session
        name: Display name
        email: Email address, stored as given
        identity_id: External identity id, the natural key
        image: Optional avatar URL

    Returns:
        The new record's id, or None when the user already existed
    """
    if get_user(session, identity_id) is not None:
        logger.info("User already synced: identity_id=%s", identity_id)
        return None

    user = User(identity_id=identity_id, name=name, email=email, image=image)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # Lost a race with a concurrent sync of the same identity
        session.rollback()
        logger.info("User synced concurrently: identity_id=%s", identity_id)
        return None

    logger.info("User created: identity_id=%s id=%s", identity_id, user.id)
    return user.id

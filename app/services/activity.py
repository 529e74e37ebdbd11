from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import SessionLocal
from app.core.timeutils import utcnow
from app.models.user import User

logger = logging.getLogger(__name__)


class ActivityTracker:
    """Records "last activity" for a user outside the request's read path.

    Token validation schedules `touch` as a background task; it runs after
    the response is sent, on its own session.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def touch(self, user_id: int) -> None:
        db = self._session_factory()
        try:
            updated = (
                db.query(User)
                .filter(User.id == user_id, User.is_deleted.is_(False))
                .update({User.last_login_at: utcnow()}, synchronize_session=False)
            )
            db.commit()
            if not updated:
                logger.debug("activity skipped: user_id=%s not found", user_id)
        except SQLAlchemyError:
            db.rollback()
            logger.warning("activity update failed user_id=%s", user_id, exc_info=True)
        finally:
            db.close()


activity_tracker = ActivityTracker()


def get_activity_tracker() -> ActivityTracker:
    return activity_tracker

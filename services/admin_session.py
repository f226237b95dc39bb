"""
Admin session resolution.

The login flow (outside this service) stores the admin's ``user_id`` in the
signed session cookie. A session only counts while that id still names a
user in the Users collection; a malformed, unknown or deleted user id is
removed from the session so the stale cookie stops being presented as a
login.
"""

from __future__ import annotations

from typing import Optional

from starlette.requests import Request

from repositories.user_repository import UserRepository
from schemas.models.user import AdminUserDoc
from shared.logging import get_logger

log = get_logger(__name__)

SESSION_USER_KEY = "user_id"


class SessionUserResolver:
    def __init__(self, user_repo: UserRepository) -> None:
        self._users = user_repo

    async def resolve(self, request: Request) -> Optional[AdminUserDoc]:
        """Return the signed-in admin user, or None (clearing a stale session)."""
        if "session" not in request.scope:
            return None
        raw = request.session.get(SESSION_USER_KEY)
        if not raw:
            return None

        user = await self._users.find_by_id(raw)
        if user is None or not user.email:
            request.session.pop(SESSION_USER_KEY, None)
            log.info("admin_session_rejected", path=request.url.path)
            return None
        return user

"""Select users with recent learning activity."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional

from .analytics_models import UserRef
from .db.session import SessionScope, session_scope
from .repositories.users import UserRepository, users
from .time_windows import Clock, SystemClock

logger = logging.getLogger(__name__)


class ActiveUserSelector:
    """Users who started a session or touched a progress record within the activity window."""

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        scope: SessionScope = session_scope,
        user_repository: UserRepository = users,
        window: timedelta = timedelta(hours=24),
    ) -> None:
        self._clock = clock or SystemClock()
        self._scope = scope
        self._users = user_repository
        self._window = window

    def get_active_users(self) -> List[UserRef]:
        since = self._clock.now() - self._window
        with self._scope() as session:
            ids = self._users.active_user_ids(session, since)
            refs = self._users.get_refs(session, ids)
        logger.debug("Found %d active user(s) since %s", len(refs), since.isoformat())
        return refs


__all__ = ["ActiveUserSelector"]

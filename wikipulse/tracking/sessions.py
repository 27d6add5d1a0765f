# ==============================================================================
# Session Lifecycle Manager
# ==============================================================================
"""
Creates, resumes, times out and closes device sessions.

The pure rules live in core/session_processor.py; this module wires them to
the current-session slot and the session log of an AnalyticsStore.

Lifecycle:
    NONE -> ACTIVE -> (TIMED_OUT | EXPLICIT_END) -> CLOSED

Storage failures never raise: a session that cannot be saved is simply not
remembered, and the next call starts a new one.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from wikipulse.base.context_probe import ContextProbe
from wikipulse.core.models import Session, utcnow
from wikipulse.core.session_processor import SessionProcessor
from wikipulse.infrastructure.stores import AnalyticsStore
from wikipulse.utils.ids import generate_id

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class SessionManager:
    """
    Owns the current-session slot of one device.

    Exactly one session is active at a time. A new one is created whenever
    none is stored, the stored one reached the timeout, or a different user
    identity starts tracking.
    """

    def __init__(
        self,
        store: AnalyticsStore,
        probe: ContextProbe,
        clock: Clock = utcnow,
        timeout_minutes: int = 30,
        flush_expired: bool = True,
    ):
        """
        Initialize the session manager.

        Args:
            store: Analytics store holding the slot and the session log
            probe: Source of the device snapshot captured per session
            clock: Returns the current time (injectable for virtual time)
            timeout_minutes: Session age at which a new session is started
            flush_expired: Append timed-out sessions to the log before replacing them
        """
        self.store = store
        self.probe = probe
        self.clock = clock
        self.processor = SessionProcessor(timeout_minutes=timeout_minutes)
        self.flush_expired = flush_expired

    # ==========================================================================
    # Identity
    # ==========================================================================

    def resolve_user_id(self) -> str:
        """
        Return the device's persisted user id, generating one on first use.

        If the id cannot be persisted it is still returned, but a new one
        will be generated next time.
        """
        user_id = self.store.user_id.load()
        if user_id:
            return user_id
        user_id = generate_id("user", self.clock())
        self.store.user_id.save(user_id)
        logger.debug("Generated user id %s", user_id)
        return user_id

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    def current_session(self) -> Session | None:
        """The active session, or None if there is none (never creates one)."""
        session = self.store.current_session.load()
        if self.processor.is_session_expired(session, self.clock()):
            return None
        return session

    def get_or_create_session(self, user_id: str | None = None) -> tuple[Session, bool]:
        """
        Resolve the active session, creating a fresh one when needed.

        Args:
            user_id: Identity to attribute the session to. When None, the
                    stored session's user (or the device user id) is used.

        Returns:
            Tuple of (session, created)
        """
        now = self.clock()
        session = self.store.current_session.load()

        if (
            session is not None
            and user_id is not None
            and session.user_id != user_id
            and not self.processor.is_session_expired(session, now)
        ):
            logger.info("User changed from %s to %s, closing session", session.user_id, user_id)
            self._close_and_log(session, now)
            session = None

        if not self.processor.is_session_expired(session, now):
            return session, False

        if session is not None:
            self._flush(session)

        new_session = self.processor.create_session(
            session_id=generate_id("session", now),
            user_id=user_id or self.resolve_user_id(),
            now=now,
            device_info=self.probe.device_info(),
        )
        self.store.current_session.save(new_session)
        logger.debug("Started session %s for %s", new_session.session_id, new_session.user_id)
        return new_session, True

    def record_page_view(self, session: Session, page: str) -> bool:
        """Count a page view against the session and persist it."""
        self.processor.record_page_view(session, page, self.clock())
        return self.store.current_session.save(session)

    def touch(self, session: Session) -> bool:
        """Record non-page-view activity on the session and persist it."""
        self.processor.touch(session, self.clock())
        return self.store.current_session.save(session)

    def end_session(self, session: Session | None = None) -> Session | None:
        """
        Close a session, append it to the log and clear the current slot.

        Args:
            session: Session to close (default: the stored current session)

        Returns:
            The closed session, or None when there was no session to close
        """
        if session is None:
            session = self.store.current_session.load()
        if session is None:
            logger.debug("end_session called with no current session")
            return None
        self._close_and_log(session, self.clock())
        self.store.current_session.clear()
        return session

    def flush_expired_session(self) -> Session | None:
        """
        Move a stored session that has timed out into the log and empty the slot.

        Returns:
            The expired session, or None when the slot was empty or still active
        """
        session = self.store.current_session.load()
        if session is None or not self.processor.is_session_expired(session, self.clock()):
            return None
        self._flush(session)
        self.store.current_session.clear()
        return session

    def _flush(self, session: Session) -> None:
        if session.is_closed or not self.flush_expired:
            return
        self.processor.close_expired_session(session)
        self.store.sessions.append(session)
        logger.debug("Flushed expired session %s", session.session_id)

    def _close_and_log(self, session: Session, now: datetime) -> None:
        self.processor.close_session(session, now)
        self.store.sessions.append(session)
        logger.debug("Closed session %s after %ss", session.session_id, session.duration)

# ==============================================================================
# Session Processor - Pure Domain Logic
# ==============================================================================
"""
Pure session lifecycle logic with no storage dependencies.

This module contains the domain logic for device sessions:
- Session timeout detection
- Session creation
- Page view counting and exit page tracking
- Closing sessions (end time and floored duration)

All methods work on Session models and explicit timestamps - no store,
clock or probe dependencies. This allows the logic to be:
- Unit tested without mocks
- Driven by virtual time in tests
- Reused by the session manager and by data import tools
"""

from datetime import datetime, timedelta

from wikipulse.core.models import DeviceInfo, Session


class SessionProcessor:
    """
    Pure session processing logic.

    Lifecycle: a session is ACTIVE while it has no end_time and its age
    (measured from start_time) is below the timeout. Once the age reaches
    the timeout it is expired; closing it sets end_time and duration.
    """

    def __init__(self, timeout_minutes: int = 30):
        """
        Initialize session processor.

        Args:
            timeout_minutes: Session timeout in minutes. A session whose age
                            reaches this value is no longer returned as current.
        """
        self.timeout = timedelta(minutes=timeout_minutes)

    def is_session_expired(self, session: Session | None, now: datetime) -> bool:
        """
        Check if a session can no longer be used as the current session.

        Args:
            session: Current session, or None if no session exists
            now: Current time

        Returns:
            True if the session is missing, closed, or its age reached the timeout
        """
        if session is None or session.is_closed:
            return True
        return now - session.start_time >= self.timeout

    def create_session(
        self,
        session_id: str,
        user_id: str,
        now: datetime,
        device_info: DeviceInfo | None = None,
    ) -> Session:
        """
        Create a new session with zeroed counters.

        Args:
            session_id: Identifier for the new session
            user_id: Identity the session belongs to
            now: Start time
            device_info: Device snapshot captured at creation

        Returns:
            New active Session
        """
        return Session(
            session_id=session_id,
            user_id=user_id,
            start_time=now,
            page_views=0,
            device_info=device_info or DeviceInfo(),
            last_activity=now,
        )

    def record_page_view(self, session: Session, page: str, now: datetime | None = None) -> Session:
        """
        Count a page view against the session.

        Mutates the session in place and returns it.
        """
        session.page_views += 1
        session.exit_page = page
        if now is not None:
            session.last_activity = now
        return session

    def touch(self, session: Session, now: datetime) -> Session:
        """Record activity on the session without counting a page view."""
        if session.last_activity is None or now > session.last_activity:
            session.last_activity = now
        return session

    def close_session(self, session: Session, end_time: datetime) -> Session:
        """
        Close a session.

        Sets end_time and duration (whole seconds, floored, never negative).
        Mutates the session in place and returns it.
        """
        session.end_time = end_time
        elapsed = (end_time - session.start_time).total_seconds()
        session.duration = max(0, int(elapsed // 1))
        return session

    def close_expired_session(self, session: Session) -> Session:
        """
        Close a session that timed out without an explicit end.

        The session is considered to have ended at its last recorded activity.
        """
        return self.close_session(session, session.last_activity or session.start_time)

import logging
from contextlib import contextmanager

LOG = logging.getLogger(__name__)


class SessionRegistry:
    """All live sessions, keyed by their host context."""

    def __init__(self):
        self._sessions = {}
        self._broadcasting = False

    def __len__(self):
        return len(self._sessions)

    def __iter__(self):
        return iter(list(self._sessions.values()))

    def __contains__(self, context):
        return context in self._sessions

    def get(self, context):
        return self._sessions.get(context)

    def register(self, session):
        self._check_mutable()
        self._sessions[session.context] = session

    def unregister(self, context):
        self._check_mutable()
        session = self._sessions.pop(context, None)
        if session is not None:
            session.close()
        return session

    def _check_mutable(self):
        if self._broadcasting:
            raise RuntimeError("sessions cannot be added or removed during a broadcast")

    @contextmanager
    def _broadcast(self):
        self._broadcasting = True
        try:
            yield list(self._sessions.values())
        finally:
            self._broadcasting = False

    def refresh_engine(self):
        LOG.debug("Refresh engine for %d sessions", len(self._sessions))
        with self._broadcast() as sessions:
            for session in sessions:
                session.set_engine()
                if session.context.is_focused():
                    session.reset()

    def refresh_option(self):
        LOG.debug("Refresh option for %d sessions", len(self._sessions))
        with self._broadcast() as sessions:
            for session in sessions:
                session.set_option()
                if session.context.is_focused():
                    session.reset()

    def close(self):
        self._check_mutable()
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()

"""
Process-wide map of channel -> live quiz session.
"""
import logging
import threading
from typing import Dict, List, Optional

from .models import QuizSession


class SessionStore:
    """Holds at most one live session per channel."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._sessions: Dict[int, QuizSession] = {}
        self._lock = threading.Lock()

    def get(self, channel_id: int) -> Optional[QuizSession]:
        return self._sessions.get(channel_id)

    def has(self, channel_id: int) -> bool:
        return channel_id in self._sessions

    def try_insert(self, channel_id: int, session: QuizSession) -> bool:
        """
        Insert a session unless the channel is already occupied.

        The check and the insert happen under one lock.

        Returns:
            True if inserted, False if another session holds the channel
        """
        with self._lock:
            if channel_id in self._sessions:
                return False
            self._sessions[channel_id] = session
            return True

    def remove(self, channel_id: int, session: Optional[QuizSession] = None) -> Optional[QuizSession]:
        """
        Release a channel.

        Args:
            channel_id: Channel to release
            session: If given, only release when this exact session holds
                the channel

        Returns:
            The removed session, or None if nothing was removed
        """
        with self._lock:
            current = self._sessions.get(channel_id)
            if current is None:
                return None
            if session is not None and current is not session:
                return None
            del self._sessions[channel_id]
            return current

    def channel_ids(self) -> List[int]:
        return list(self._sessions.keys())

    def __len__(self) -> int:
        return len(self._sessions)

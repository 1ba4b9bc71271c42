"""
Quiz engine core logic.
Handles question selection and the timed answer-collection window.
"""
import asyncio
import logging
import random
import time
from typing import List, Optional

from .models import CloseReason, Question, Response

# Set up logger for session lifecycle events
logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 20


class SessionLifecycleLogger:
    """Structured logging for session and collection window events."""

    @staticmethod
    def log_session_created(channel_id: int, bank_name: str, question_count: int) -> None:
        logger.info(
            f"Session lifecycle: CREATED - Channel {channel_id}, Bank '{bank_name}', Questions {question_count}",
            extra={
                'event_type': 'session_created',
                'channel_id': channel_id,
                'bank_name': bank_name,
                'question_count': question_count,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_window_opened(channel_id: int, question_index: int, duration: float) -> None:
        """Log a collection window opening."""
        logger.info(
            f"Session lifecycle: WINDOW_OPEN - Channel {channel_id}, Question {question_index + 1}, Duration {duration}s",
            extra={
                'event_type': 'window_opened',
                'channel_id': channel_id,
                'question_index': question_index,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_window_closed(channel_id: int, question_index: int, reason: CloseReason, elapsed: float) -> None:
        """Log a collection window closing (answered, timeout, manual stop, error)."""
        logger.info(
            f"Session lifecycle: WINDOW_CLOSED - Channel {channel_id}, Question {question_index + 1}, "
            f"Reason {reason.value}, Open {elapsed:.3f}s",
            extra={
                'event_type': 'window_closed',
                'channel_id': channel_id,
                'question_index': question_index,
                'reason': reason.value,
                'elapsed': elapsed,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_state_transition(channel_id: int, from_state: str, to_state: str, reason: str = None) -> None:
        logger.info(
            f"Session lifecycle: STATE_TRANSITION - Channel {channel_id}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'session_state_transition',
                'channel_id': channel_id,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_late_response(channel_id: int, responder_id: int) -> None:
        """Log a response that lost the first-answer race."""
        logger.debug(
            f"Session lifecycle: LATE_RESPONSE - Channel {channel_id}, Responder {responder_id}",
            extra={
                'event_type': 'late_response_rejected',
                'channel_id': channel_id,
                'responder_id': responder_id,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_session_released(channel_id: int, reason: str) -> None:
        logger.info(
            f"Session lifecycle: RELEASED - Channel {channel_id} ({reason})",
            extra={
                'event_type': 'session_released',
                'channel_id': channel_id,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_session_error(channel_id: int, error_type: str, error_message: str, operation: str) -> None:
        """Log session errors with context."""
        logger.error(
            f"Session lifecycle: ERROR - Channel {channel_id}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'session_error',
                'channel_id': channel_id,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )


class CollectionWindow:
    """
    Time-bounded period during which responses to one question are accepted.

    Responses are queued by ``submit``; the session driver waits on
    ``next_response`` for the first response, the deadline, or ``close``.
    Once closed, ``submit`` refuses everything.
    """

    def __init__(self, channel_id: int = None, duration: float = DEFAULT_WINDOW_SECONDS):
        self._channel_id = channel_id
        self._duration = duration
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = asyncio.Event()
        self._close_reason: Optional[CloseReason] = None
        self._opened_at: Optional[float] = None

    def open(self) -> None:
        """Start the countdown."""
        if self._opened_at is None:
            self._opened_at = time.monotonic()

    def submit(self, response: Response) -> bool:
        """
        Offer a response to the window.

        Returns:
            True if queued, False if the window already closed
        """
        if self.is_closed:
            return False
        self._queue.put_nowait(response)
        return True

    def close(self, reason: CloseReason) -> bool:
        """
        Close the window. The first reason wins.

        Returns:
            True if this call closed the window
        """
        if self.is_closed:
            logger.debug(
                f"Collection window in channel {self._channel_id} already closed "
                f"({self._close_reason.value}); ignoring {reason.value}"
            )
            return False
        self._close_reason = reason
        self._closed.set()
        return True

    async def next_response(self) -> Optional[Response]:
        """
        Wait for the first response.

        Returns:
            The first queued response, or None when the deadline passed
            (window closed with TIMEOUT) or the window was closed externally
        """
        self.open()
        if self.is_closed:
            return None

        remaining = max(0.0, self._duration - self.elapsed)
        get_task = asyncio.ensure_future(self._queue.get())
        closed_task = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait(
                {get_task, closed_task},
                timeout=remaining,
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            closed_task.cancel()
            if not get_task.done():
                get_task.cancel()

        if self.is_closed:
            # Stopped externally; a response that raced in is handed back to the queue
            if get_task in done and not get_task.cancelled():
                self._queue.put_nowait(get_task.result())
            return None

        if get_task in done and not get_task.cancelled():
            return get_task.result()

        self.close(CloseReason.TIMEOUT)
        return None

    def drain(self) -> List[Response]:
        """Remove and return every response still queued."""
        pending = []
        while not self._queue.empty():
            pending.append(self._queue.get_nowait())
        return pending

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    @property
    def close_reason(self) -> Optional[CloseReason]:
        return self._close_reason

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def elapsed(self) -> float:
        if self._opened_at is None:
            return 0.0
        return time.monotonic() - self._opened_at


class QuizEngine:
    """Core quiz engine that handles question selection and answer checking."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def select_questions(self, questions: List[Question], desired_count: Optional[int] = None) -> List[Question]:
        """
        Shuffle and optionally truncate a bank snapshot for a new session.

        Args:
            questions: Bank contents
            desired_count: Requested number of questions; None uses them all

        Returns:
            New list owned by the caller

        Raises:
            ValueError: If questions list is empty
        """
        if not questions:
            raise ValueError("Cannot select questions from empty list")

        selected = self.shuffle_questions(questions)
        if desired_count is not None:
            selected = selected[:self.clamp_count(desired_count, len(selected))]
        return selected

    def shuffle_questions(self, questions: List[Question]) -> List[Question]:
        """Return a uniformly shuffled copy (Fisher-Yates)."""
        shuffled = list(questions)
        self._rng.shuffle(shuffled)
        return shuffled

    @staticmethod
    def clamp_count(desired_count: int, available: int) -> int:
        """Clamp a requested count into [1, available]."""
        return min(max(desired_count, 1), available)

    @staticmethod
    def is_correct(question: Question, chosen_index: int) -> bool:
        return chosen_index in set(question.correct_indices)

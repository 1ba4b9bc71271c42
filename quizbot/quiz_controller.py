"""
Quiz session controller.
Drives the per-channel session state machine: question sequencing, the
answer-collection window, first-correct-wins scoring, and teardown.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from .bank_registry import BankRegistry
from .errors import (
    BankNotFoundError,
    ExpiredInteractionError,
    QuizBotError,
    SessionConflictError,
    SessionNotFoundError,
)
from .models import (
    AnswerOutcome,
    CloseReason,
    Question,
    QuizSession,
    Response,
    SessionState,
)
from .quiz_engine import (
    DEFAULT_WINDOW_SECONDS,
    CollectionWindow,
    QuizEngine,
    SessionLifecycleLogger,
)
from .scoreboard import ScoreboardFormatter
from .session_store import SessionStore
from .validation import validate_question

TIME_UP_MESSAGE = "⏰ Time up! Moving on…"
NOTHING_RUNNING_MESSAGE = "ℹ️ No quiz is running in this channel."
STOPPED_MESSAGE = "🛑 **Quiz stopped.** Scoreboard cleared for this channel."
ABORTED_MESSAGE = "❌ Something went wrong presenting the question. The quiz has been stopped."


class QuizController:
    """
    Orchestrates quiz sessions across chat channels.

    Each channel has at most one live session. A session runs as one asyncio
    task that presents a question, waits on its collection window, scores the
    first response, and moves on until the questions run out or the quiz is
    stopped.

    Collaborators:
        presenter: ``present(channel_id, question, index, total, seconds)``
            returning a message handle, ``open_collection_window(handle,
            question, window)``, ``close_window(handle, reason)``,
            ``report_outcome(response, outcome)`` and
            ``reject_response(response)``; all async
        notifier: async ``notify(channel_id, text)``
        identity_resolver: async ``resolve(user_id)`` for scoreboard names
    """

    def __init__(
        self,
        registry: BankRegistry,
        presenter,
        notifier,
        identity_resolver=None,
        session_store: Optional[SessionStore] = None,
        quiz_engine: Optional[QuizEngine] = None,
        window_seconds: float = DEFAULT_WINDOW_SECONDS
    ):
        """
        Initialize the quiz controller.

        Args:
            registry: Source of question banks
            presenter: Renders questions and collects responses
            notifier: Posts status messages to a channel
            identity_resolver: Resolves user ids for the scoreboard
            session_store: Shared channel -> session map
            quiz_engine: Question selection; a default engine if None
            window_seconds: Length of each collection window
        """
        self.logger = logging.getLogger(__name__)
        self.registry = registry
        self.presenter = presenter
        self.notifier = notifier
        self.sessions = session_store or SessionStore()
        self.quiz_engine = quiz_engine or QuizEngine()
        self.scoreboard_formatter = ScoreboardFormatter(identity_resolver)
        self.window_seconds = window_seconds

        self.logger.info("QuizController initialized")

    # ------------------------------------------------------------------
    # Session lookup
    # ------------------------------------------------------------------

    def get_session(self, channel_id: int) -> Optional[QuizSession]:
        return self.sessions.get(channel_id)

    def has_active_session(self, channel_id: int) -> bool:
        session = self.sessions.get(channel_id)
        return session is not None and not session.is_finished

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def resolve_bank_name(self, group_id, requested: Optional[str] = None) -> Optional[str]:
        """
        Pick the bank for a start request.

        The requested name wins, then the group's last used bank, then the
        only bank when exactly one exists.
        """
        requested = (requested or "").strip()
        if requested:
            return requested
        last_used = self.registry.get_last_used(group_id)
        if last_used:
            return last_used
        names = self.registry.bank_names(group_id)
        if len(names) == 1:
            return names[0]
        return None

    def create_session(
        self,
        channel_id: int,
        group_id,
        bank_name: str,
        bank: List[Question],
        desired_count: Optional[int] = None
    ) -> QuizSession:
        """
        Create and register a session over a shuffled snapshot of a bank.

        Raises:
            ValueError: If the bank is empty
            SessionConflictError: If the channel already has a session
        """
        if not bank:
            raise ValueError("Selected bank has no questions")
        if self.sessions.has(channel_id):
            raise SessionConflictError(f"Quiz already running in channel {channel_id}")

        session = QuizSession(
            channel_id=channel_id,
            group_id=str(group_id),
            bank_name=bank_name,
            questions=self.quiz_engine.select_questions(bank, desired_count),
        )
        if not self.sessions.try_insert(channel_id, session):
            raise SessionConflictError(f"Quiz already running in channel {channel_id}")

        SessionLifecycleLogger.log_session_created(channel_id, bank_name, session.total_questions)
        return session

    def start_quiz(
        self,
        channel_id: int,
        group_id,
        bank_name: Optional[str] = None,
        desired_count: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Start a quiz with error handling.

        Args:
            channel_id: Channel to run the quiz in
            group_id: Group that owns the banks
            bank_name: Requested bank; falls back to the last used bank
            desired_count: Number of questions; None uses the whole bank

        Returns:
            Dictionary with operation results. ``needs_selection`` is set
            when no bank could be chosen and the caller should ask the user.
        """
        try:
            name = self.resolve_bank_name(group_id, bank_name)
            if name is None:
                return {
                    'success': False,
                    'needs_selection': True,
                    'banks': self.registry.list_banks(group_id),
                    'user_message': "Please choose a bank to start:"
                }

            bank = self.registry.get_bank(group_id, name)
            if bank is None:
                raise BankNotFoundError(f"Bank '{name}' not found")
            self.registry.set_last_used(group_id, name)

            session = self.create_session(channel_id, group_id, name, bank, desired_count)
            count = session.total_questions
            return {
                'success': True,
                'message': f"Quiz '{name}' started successfully",
                'bank_name': name,
                'total_questions': count,
                'user_message': (
                    f"🎬 **Quiz starting!** {count} question{'s' if count > 1 else ''}. "
                    f"First correct click gets the point. ⏱️ {self.window_seconds:g}s per question."
                )
            }

        except (QuizBotError, ValueError) as e:
            return self._error_result(channel_id, e, "start_quiz", bank_name)

    def start_quiz_presentation(self, channel_id: int) -> Optional[asyncio.Task]:
        """
        Launch the session driver for a freshly created session.

        Returns:
            The driver task, or None if there is nothing to run
        """
        session = self.sessions.get(channel_id)
        if session is None or session.is_finished or session.task is not None:
            return None
        session.task = asyncio.create_task(self.run_session(session))
        return session.task

    # ------------------------------------------------------------------
    # Stop / score
    # ------------------------------------------------------------------

    def stop_quiz(self, channel_id: int) -> Dict[str, Any]:
        """
        Stop the quiz in a channel.

        The open collection window closes with MANUAL_STOP; the driver exits
        without advancing or posting a scoreboard.

        Returns:
            Dictionary with operation results
        """
        try:
            session = self._require_live_session(channel_id)
        except SessionNotFoundError as e:
            self.logger.debug(f"Stop requested with nothing running: {e}")
            return {
                'success': False,
                'error': str(e),
                'user_message': NOTHING_RUNNING_MESSAGE
            }

        self._transition(session, SessionState.FINISHED, "manual stop")
        window = session.active_window
        if window is not None:
            window.close(CloseReason.MANUAL_STOP)
        self._release(session, CloseReason.MANUAL_STOP.value)

        return {
            'success': True,
            'message': "Quiz stopped successfully",
            'user_message': STOPPED_MESSAGE
        }

    async def render_scoreboard(self, channel_id: int) -> str:
        """Render the live session's scoreboard without touching its state."""
        session = self.sessions.get(channel_id)
        return await self.scoreboard_formatter.render(session.scoreboard if session else None)

    # ------------------------------------------------------------------
    # Session driver
    # ------------------------------------------------------------------

    async def run_session(self, session: QuizSession) -> None:
        """
        Drive a session until it finishes, is stopped, or fails.

        The session's store slot is always released on exit.
        """
        channel_id = session.channel_id
        try:
            while not session.is_finished:
                if session.current_index >= session.total_questions:
                    await self._finish_session(session)
                    return

                question = session.questions[session.current_index]
                issues = validate_question(question)
                if issues:
                    self.logger.warning(
                        f"Skipping invalid question {session.current_index + 1} in channel {channel_id}: {issues}"
                    )
                    await self._safe_notify(channel_id, f"⚠️ Skipping invalid question ({', '.join(issues)}).")
                    session.current_index += 1
                    continue

                reason = await self._ask_question(session, question)

                if reason is CloseReason.MANUAL_STOP or session.is_finished:
                    return
                if reason is CloseReason.ERROR:
                    await self._abort_session(session)
                    return
                if reason is CloseReason.TIMEOUT:
                    await self._safe_notify(channel_id, TIME_UP_MESSAGE)

                session.current_index += 1

        except asyncio.CancelledError:
            if session.active_window is not None:
                session.active_window.close(CloseReason.MANUAL_STOP)
            raise
        except Exception as e:
            SessionLifecycleLogger.log_session_error(channel_id, type(e).__name__, str(e), "run_session")
            await self._abort_session(session)
        finally:
            session.active_window = None
            if not session.is_finished:
                self._transition(session, SessionState.FINISHED, "driver exited")
            self._release(session, "driver exited")

    async def _ask_question(self, session: QuizSession, question: Question) -> CloseReason:
        """
        Present one question and run its collection window.

        Returns:
            The reason the window closed
        """
        channel_id = session.channel_id
        index = session.current_index

        window = CollectionWindow(channel_id, self.window_seconds)
        session.active_window = window
        session.answered_this_question = False

        try:
            handle = await self.presenter.present(
                channel_id, question, index, session.total_questions, self.window_seconds
            )
        except Exception as e:
            SessionLifecycleLogger.log_session_error(channel_id, type(e).__name__, str(e), "present")
            window.close(CloseReason.ERROR)
            session.active_window = None
            return CloseReason.ERROR

        if window.is_closed:
            # Stopped while the question was being rendered
            return await self._abandon_window(session, handle, window)

        try:
            await self.presenter.open_collection_window(handle, question, window)
        except Exception as e:
            SessionLifecycleLogger.log_session_error(channel_id, type(e).__name__, str(e), "open_collection_window")
            window.close(CloseReason.ERROR)
            await self._safe_close_window(channel_id, handle, CloseReason.ERROR)
            session.active_window = None
            return CloseReason.ERROR

        if window.is_closed:
            return await self._abandon_window(session, handle, window)

        self._transition(session, SessionState.AWAITING_ANSWER, f"question {index + 1}")
        window.open()
        SessionLifecycleLogger.log_window_opened(channel_id, index, window.duration)

        response = await window.next_response()
        if response is not None:
            await self._handle_response(session, question, response)
            window.close(CloseReason.ANSWERED)

        reason = window.close_reason
        SessionLifecycleLogger.log_window_closed(channel_id, index, reason, window.elapsed)
        await self._safe_close_window(channel_id, handle, reason)

        for late in window.drain():
            await self._reject_response(session, late)

        session.active_window = None
        return reason

    async def _abandon_window(self, session: QuizSession, handle, window: CollectionWindow) -> CloseReason:
        await self._safe_close_window(session.channel_id, handle, window.close_reason)
        session.active_window = None
        return window.close_reason

    async def _handle_response(self, session: QuizSession, question: Question, response: Response) -> None:
        """Score the first response to the current question and report back."""
        if session.answered_this_question:
            await self._reject_response(session, response)
            return
        session.answered_this_question = True

        correct = self.quiz_engine.is_correct(question, response.chosen_index)
        if correct:
            previous = session.scoreboard.get(response.responder_id, 0)
            session.scoreboard[response.responder_id] = previous + 1

        self.logger.debug(
            f"Responder {response.responder_id} answered question {session.current_index + 1} "
            f"in channel {session.channel_id}: {'correct' if correct else 'incorrect'}"
        )

        outcome = AnswerOutcome(
            correct=correct,
            correct_letters=question.correct_letters(),
            rationale=question.rationale,
        )
        try:
            await self.presenter.report_outcome(response, outcome)
        except ExpiredInteractionError:
            self.logger.debug(f"Interaction expired before outcome could be reported in channel {session.channel_id}")
        except Exception as e:
            SessionLifecycleLogger.log_session_error(session.channel_id, type(e).__name__, str(e), "report_outcome")

    async def _reject_response(self, session: QuizSession, response: Response) -> None:
        SessionLifecycleLogger.log_late_response(session.channel_id, response.responder_id)
        try:
            await self.presenter.reject_response(response)
        except ExpiredInteractionError:
            pass
        except Exception as e:
            SessionLifecycleLogger.log_session_error(session.channel_id, type(e).__name__, str(e), "reject_response")

    async def _finish_session(self, session: QuizSession) -> None:
        """Questions exhausted: release the channel and post the final scoreboard."""
        self._transition(session, SessionState.FINISHED, "questions exhausted")
        self._release(session, "finished")
        text = await self.scoreboard_formatter.render(session.scoreboard)
        await self._safe_notify(session.channel_id, text)

    async def _abort_session(self, session: QuizSession) -> None:
        if session.is_finished:
            return
        self._transition(session, SessionState.FINISHED, "error")
        self._release(session, CloseReason.ERROR.value)
        await self._safe_notify(session.channel_id, ABORTED_MESSAGE)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_live_session(self, channel_id: int) -> QuizSession:
        session = self.sessions.get(channel_id)
        if session is None or session.is_finished:
            raise SessionNotFoundError(f"No active quiz in channel {channel_id}")
        return session

    def _transition(self, session: QuizSession, new_state: SessionState, reason: str = None) -> None:
        # FINISHED is terminal
        if session.state is new_state or session.is_finished:
            return
        SessionLifecycleLogger.log_state_transition(
            session.channel_id, session.state.value, new_state.value, reason
        )
        session.state = new_state

    def _release(self, session: QuizSession, reason: str) -> None:
        if self.sessions.remove(session.channel_id, session) is not None:
            SessionLifecycleLogger.log_session_released(session.channel_id, reason)

    async def _safe_notify(self, channel_id: int, text: str) -> None:
        try:
            await self.notifier.notify(channel_id, text)
        except Exception as e:
            SessionLifecycleLogger.log_session_error(channel_id, type(e).__name__, str(e), "notify")

    async def _safe_close_window(self, channel_id: int, handle, reason: CloseReason) -> None:
        try:
            await self.presenter.close_window(handle, reason)
        except ExpiredInteractionError:
            pass
        except Exception as e:
            SessionLifecycleLogger.log_session_error(channel_id, type(e).__name__, str(e), "close_window")

    def _error_result(self, channel_id: int, error: Exception, operation: str, bank_name: str = None) -> Dict[str, Any]:
        """
        Convert a start failure into a result dictionary.

        Args:
            channel_id: Channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed
            bank_name: Requested bank, for the user message
        """
        self.logger.warning(f"Error in {operation} for channel {channel_id}: {error}")
        return {
            'success': False,
            'error': str(error),
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error, bank_name)
        }

    @staticmethod
    def _get_user_friendly_error_message(error: Exception, bank_name: str = None) -> str:
        if isinstance(error, SessionConflictError):
            return "⚠️ A quiz is already running in this channel."
        if isinstance(error, BankNotFoundError):
            return f"❌ Bank **{bank_name or 'unknown'}** not found. Use `/quiz list`."
        if isinstance(error, ValueError):
            return "⚠️ Selected bank has no questions."
        return "❌ An unexpected error occurred while starting the quiz. Please try again."

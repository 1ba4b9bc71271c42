"""
Core data models for the quiz bot.
"""
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class QuestionKind(Enum):
    """Informational question type. Scoring is always set membership."""
    SINGLE = "single"
    MULTI_SELECT = "multi-select"
    TRUE_FALSE = "true-false"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "QuestionKind":
        """Map a free-form CSV/JSON type label onto a kind."""
        value = str(label or "").strip().lower()
        if value in ("tf", "truefalse", "true-false", "true_false"):
            return cls.TRUE_FALSE
        if value in ("sata", "multi", "multiple", "multi-select", "multiselect"):
            return cls.MULTI_SELECT
        return cls.SINGLE


@dataclass
class Question:
    """Represents a single quiz question."""
    prompt: str
    options: List[str]
    correct_indices: List[int]
    kind: QuestionKind = QuestionKind.SINGLE
    rationale: str = ""

    def correct_letters(self) -> str:
        return ", ".join(chr(65 + i) for i in sorted(set(self.correct_indices)))

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the on-disk record shape."""
        return {
            "q": self.prompt,
            "type": self.kind.value,
            "options": list(self.options),
            "answerIdx": list(self.correct_indices),
            "rationale": self.rationale,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Question":
        """
        Build a question from an on-disk record; missing fields become empty.

        Raises:
            TypeError, ValueError: If options or answer indices are malformed
        """
        return cls(
            prompt=str(record.get("q") or ""),
            options=[str(o) for o in record.get("options") or []],
            correct_indices=[int(i) for i in record.get("answerIdx") or []],
            kind=QuestionKind.from_label(record.get("type")),
            rationale=str(record.get("rationale") or ""),
        )


@dataclass
class ParseMeta:
    """Diagnostics for a CSV import."""
    row_count: int
    headers: List[str]


@dataclass
class ParseResult:
    items: List[Question]
    meta: ParseMeta


class SessionState(Enum):
    """States of a channel quiz session."""
    IDLE = "idle"
    AWAITING_ANSWER = "awaiting_answer"
    FINISHED = "finished"


class CloseReason(Enum):
    """Why a collection window closed."""
    ANSWERED = "answered"
    TIMEOUT = "timeout"
    MANUAL_STOP = "manual-stop"
    ERROR = "error"


@dataclass
class Response:
    """A responder's pick during a collection window.

    ``context`` carries the platform object needed to reply (for Discord, the
    component interaction).
    """
    responder_id: int
    chosen_index: int
    context: Any = None


@dataclass
class AnswerOutcome:
    """Result reported back to the first responder."""
    correct: bool
    correct_letters: str
    rationale: str


@dataclass
class QuizSession:
    """Represents a live quiz session in a chat channel."""
    channel_id: int
    group_id: str
    bank_name: str
    questions: List[Question]
    current_index: int = 0
    scoreboard: Dict[int, int] = field(default_factory=dict)
    state: SessionState = SessionState.IDLE
    answered_this_question: bool = False
    active_window: Optional[Any] = None
    task: Optional[asyncio.Task] = None

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def is_finished(self) -> bool:
        return self.state is SessionState.FINISHED

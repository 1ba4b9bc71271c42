"""
Tolerant CSV to question bank parser.

Accepts spreadsheets exported with heterogeneous headers, e.g.::

    question,correct,rationale,a,b,c,d
    question,type,options,answer,explanation

Answers may be letters (``A;C``), 1-based numbers (``1;3``) or the option text.
"""
import logging
import re
from typing import Dict, List, Optional

from .errors import BankParseError
from .models import ParseMeta, ParseResult, Question, QuestionKind
from .validation import MAX_OPTIONS, validate_question

logger = logging.getLogger(__name__)

PROMPT_HEADERS = ("question", "prompt", "stem")
TYPE_HEADERS = ("type", "qtype")
OPTIONS_HEADERS = ("options", "choices", "opts")
ANSWER_HEADERS = ("answer", "answers", "key", "correct")
RATIONALE_HEADERS = ("explanation", "rationale", "why")

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_LETTER_HEADER = re.compile(r"^[a-z]$")
_OPTION_PREFIX = re.compile(r"^[A-Z]\.\s*", re.IGNORECASE)
_TEXT_ANSWER_SEPARATORS = re.compile(r"[;,|]")


def split_csv_row(line: str) -> List[str]:
    """
    Split one CSV line into cells.

    A double quote toggles quoted mode, ``""`` inside quoted mode is a literal
    quote, and commas inside quoted mode do not separate cells.
    """
    cells = []
    current = []
    in_quotes = False
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            cells.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    cells.append("".join(current))
    return cells


def decode_answer_letters(raw: str) -> List[int]:
    """Decode ``A;C`` / ``1,3`` style answers into 0-based indices."""
    indices = []
    for token in raw.upper().replace(",", ";").split(";"):
        token = token.strip()
        if not token:
            continue
        if len(token) == 1 and "A" <= token <= "Z":
            indices.append(ord(token) - 65)
        elif token.isascii() and token.isdigit():
            value = int(token) - 1
            if value >= 0:
                indices.append(value)
    return indices


def _unique(values: List[int]) -> List[int]:
    seen = set()
    out = []
    for value in values:
        if value not in seen:
            seen.add(value)
            out.append(value)
    return out


class CsvBankParser:
    """Turns raw CSV text into a validated list of questions."""

    def parse(self, raw_text: str) -> ParseResult:
        """
        Parse CSV text into a question bank.

        Args:
            raw_text: Full CSV file contents

        Returns:
            ParseResult with the presentable questions and import diagnostics

        Raises:
            BankParseError: If the header row lacks a prompt, an answer, or
                any options column
        """
        text = raw_text or ""
        if text.startswith("\ufeff"):
            text = text[1:]
        lines = [line for line in _LINE_BREAK.split(text) if line.strip()]
        if not lines:
            return ParseResult(items=[], meta=ParseMeta(row_count=0, headers=[]))

        headers = [h.strip().lower() for h in split_csv_row(lines[0])]
        columns = self._map_columns(headers)
        has_options = columns["options"] is not None or bool(columns["letters"])
        if columns["prompt"] is None or columns["answer"] is None or not has_options:
            raise BankParseError(
                "Headers must include at least: question, options (or a|b|c...), answer. "
                f"Detected: {' | '.join(headers)}",
                headers,
            )

        rows = lines[1:]
        if not rows:
            return ParseResult(items=[], meta=ParseMeta(row_count=0, headers=headers))

        items = []
        for raw in rows:
            question = self._parse_row(split_csv_row(raw), columns)
            if not validate_question(question):
                items.append(question)

        dropped = len(rows) - len(items)
        if dropped:
            logger.debug(f"Dropped {dropped} of {len(rows)} CSV rows that failed validation")
        return ParseResult(items=items, meta=ParseMeta(row_count=len(rows), headers=headers))

    def _map_columns(self, headers: List[str]) -> Dict[str, object]:
        columns: Dict[str, object] = {
            "prompt": None,
            "type": None,
            "options": None,
            "answer": None,
            "rationale": None,
        }
        letters: Dict[str, int] = {}
        for i, header in enumerate(headers):
            if header in PROMPT_HEADERS:
                columns["prompt"] = i
            if header in TYPE_HEADERS:
                columns["type"] = i
            if header in OPTIONS_HEADERS:
                columns["options"] = i
            if header in ANSWER_HEADERS:
                columns["answer"] = i
            if header in RATIONALE_HEADERS:
                columns["rationale"] = i
            if _LETTER_HEADER.match(header):
                letters[header] = i
        columns["letters"] = [letters[letter] for letter in sorted(letters)][:MAX_OPTIONS]
        return columns

    @staticmethod
    def _cell(cells: List[str], index: Optional[int]) -> str:
        if index is None or index >= len(cells):
            return ""
        return cells[index].strip()

    def _parse_row(self, cells: List[str], columns: Dict[str, object]) -> Question:
        prompt = self._cell(cells, columns["prompt"])
        qtype = (self._cell(cells, columns["type"]) or "single").lower()

        if columns["options"] is not None:
            packed = self._cell(cells, columns["options"])
            if "|" in packed:
                options = packed.split("|")
            elif " ; " in packed:
                options = packed.split(" ; ")
            elif ";" in packed:
                options = packed.split(";")
            else:
                options = [packed]
        else:
            options = [self._cell(cells, i) for i in columns["letters"]]
            options = [o for o in options if o]

        options = [_OPTION_PREFIX.sub("", o).strip() for o in options]
        options = [o for o in options if o]
        if qtype in ("tf", "truefalse") and not options:
            options = ["True", "False"]
        options = options[:MAX_OPTIONS]

        answer_raw = self._cell(cells, columns["answer"])
        correct = [i for i in decode_answer_letters(answer_raw) if i < len(options)]
        if not correct and answer_raw:
            lowered = [o.lower() for o in options]
            for token in _TEXT_ANSWER_SEPARATORS.split(answer_raw):
                token = token.strip().lower()
                if token and token in lowered:
                    correct.append(lowered.index(token))

        return Question(
            prompt=prompt,
            options=options,
            correct_indices=_unique(correct),
            kind=QuestionKind.from_label(qtype),
            rationale=self._cell(cells, columns["rationale"]),
        )

"""
JSON file persistence for question banks.

One file per (group, bank): ``<data_dir>/<groupId>__<safeName>.json`` holding
the serialized question array. Last writer wins.
"""
import json
import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterator, List, Tuple

from .errors import TransportError
from .models import Question

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
_BANK_FILE = re.compile(r"^(\d+)__(.+)\.json$", re.IGNORECASE)

MAX_NAME_LENGTH = 80
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB


def safe_name(name: str) -> str:
    """Sanitize a bank name for use in a file name."""
    return _UNSAFE_CHARS.sub("_", str(name))[:MAX_NAME_LENGTH]


class BankStore:
    """Stores and enumerates question banks as JSON files."""

    def __init__(self, data_directory: str = "./data/"):
        """
        Initialize BankStore with its data directory.

        Args:
            data_directory: Directory holding the bank JSON files
        """
        self.data_directory = Path(data_directory)
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []

    def bank_path(self, group_id: str, bank_name: str) -> Path:
        return self.data_directory / f"{group_id}__{safe_name(bank_name)}.json"

    def put(self, group_id: str, bank_name: str, items: List[Question]) -> Path:
        """
        Durably write a bank, replacing any previous file.

        Args:
            group_id: Owning group identifier
            bank_name: Bank name (sanitized for the file name)
            items: Questions to store

        Returns:
            Path of the written file

        Raises:
            TransportError: If the directory or file cannot be written
        """
        path = self.bank_path(group_id, bank_name)
        try:
            self.data_directory.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump([q.to_record() for q in items], f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.logger.error(f"Save failed for bank '{bank_name}' (group {group_id}): {e}")
            raise TransportError(f"Could not save bank '{bank_name}': {e}") from e

        self.logger.info(f"Saved bank '{bank_name}' ({len(items)} q) for group {group_id}")
        return path

    def list_all(self) -> Iterator[Tuple[str, str, List[Question]]]:
        """
        Enumerate every persisted bank.

        Unreadable files, invalid JSON and empty or non-list payloads are
        skipped and recorded in ``load_errors``.

        Yields:
            (group_id, bank_name, questions) tuples
        """
        self.load_errors.clear()

        if not self.data_directory.exists():
            self.logger.info(f"Data directory {self.data_directory} does not exist yet")
            return

        try:
            files = sorted(self.data_directory.glob("*.json"))
        except OSError as e:
            self.logger.error(f"Failed to scan {self.data_directory}: {e}")
            self.load_errors.append(f"System error scanning {self.data_directory}: {e}")
            return

        for path in files:
            match = _BANK_FILE.match(path.name)
            if not match:
                continue
            group_id, bank_name = match.group(1), match.group(2)
            items = self._load_file_safely(path)
            if items:
                yield group_id, bank_name, items

    def _load_file_safely(self, path: Path) -> List[Question]:
        try:
            if not os.access(path, os.R_OK):
                self.load_errors.append(f"{path.name}: Permission denied")
                return []

            file_size = path.stat().st_size
            if file_size > MAX_FILE_SIZE:
                self.load_errors.append(
                    f"{path.name}: File too large ({file_size / 1024 / 1024:.1f}MB)"
                )
                return []

            with open(path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {path}: {e}")
            self.load_errors.append(f"{path.name}: Invalid JSON")
            return []
        except UnicodeDecodeError as e:
            self.logger.error(f"Bank file {path} is not valid UTF-8: {e}")
            self.load_errors.append(f"{path.name}: Not valid UTF-8")
            return []
        except OSError as e:
            self.logger.error(f"Failed to read bank file {path}: {e}")
            self.load_errors.append(f"{path.name}: {e}")
            return []

        if not isinstance(records, list):
            self.load_errors.append(f"{path.name}: Expected a JSON array")
            return []

        questions = []
        try:
            for record in records:
                if isinstance(record, dict):
                    questions.append(Question.from_record(record))
        except (TypeError, ValueError) as e:
            self.logger.error(f"Malformed question record in {path}: {e}")
            self.load_errors.append(f"{path.name}: Malformed question record")
            return []
        return questions

    def get_loading_summary(self) -> Dict[str, object]:
        return {
            'data_directory': str(self.data_directory),
            'has_errors': bool(self.load_errors),
            'errors': list(self.load_errors),
        }

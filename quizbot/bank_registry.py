"""
Per-group registry of named question banks.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import TransportError
from .models import Question, QuestionKind

SAMPLE_BANK_NAME = "sample"


def sample_bank() -> List[Question]:
    """Built-in bank seeded into every group, one question per kind."""
    return [
        Question(
            prompt="Which PPE items are required for contact precautions?",
            options=["Gloves", "Gown", "N95 respirator", "Eye protection"],
            correct_indices=[0, 1],
            kind=QuestionKind.MULTI_SELECT,
            rationale="Contact = gloves + gown. N95 is airborne; eye protection is procedure-dependent.",
        ),
        Question(
            prompt="Priority action for suspected sepsis on med-surg?",
            options=["Start enteral feeds", "Obtain blood cultures",
                     "Start DVT prophylaxis", "Give PRN lorazepam"],
            correct_indices=[1],
            kind=QuestionKind.SINGLE,
            rationale="Cultures before antibiotics.",
        ),
        Question(
            prompt="Diabetes sick-day rule: Continue basal insulin.",
            options=["True", "False"],
            correct_indices=[0],
            kind=QuestionKind.TRUE_FALSE,
            rationale="Prevents DKA.",
        ),
    ]


class BankRegistry:
    """
    Maps group -> bank name -> questions, plus each group's last used bank.

    Writes go through to the persistence store; the in-memory copy is the
    source of truth for running sessions.
    """

    def __init__(self, store=None):
        """
        Args:
            store: Persistence collaborator with ``put(group_id, name, items)``;
                None keeps banks in memory only
        """
        self.logger = logging.getLogger(__name__)
        self._store = store
        self._banks: Dict[str, Dict[str, List[Question]]] = {}
        self._last_used: Dict[str, str] = {}

    def ensure_group(self, group_id) -> None:
        """Seed a group with the sample bank the first time it is seen."""
        key = str(group_id)
        if self._banks.get(key):
            return
        self._banks[key] = {SAMPLE_BANK_NAME: sample_bank()}
        self._last_used[key] = SAMPLE_BANK_NAME
        self.logger.debug(f"Seeded group {key} with the sample bank")

    def list_banks(self, group_id) -> List[Tuple[str, int]]:
        self.ensure_group(group_id)
        return [(name, len(items)) for name, items in self._banks[str(group_id)].items()]

    def get_bank(self, group_id, name: str) -> Optional[List[Question]]:
        self.ensure_group(group_id)
        return self._banks[str(group_id)].get(name)

    def bank_names(self, group_id) -> List[str]:
        self.ensure_group(group_id)
        return list(self._banks[str(group_id)].keys())

    def get_last_used(self, group_id) -> Optional[str]:
        self.ensure_group(group_id)
        return self._last_used.get(str(group_id))

    def set_last_used(self, group_id, name: str) -> None:
        self.ensure_group(group_id)
        self._last_used[str(group_id)] = name

    def put_bank(self, group_id, name: str, items: List[Question]) -> bool:
        """
        Replace a bank wholesale and persist it.

        Args:
            group_id: Owning group
            name: Bank name
            items: Questions to store

        Returns:
            True if the bank was persisted, False if only the in-memory
            copy was updated
        """
        key = str(group_id)
        self.ensure_group(key)
        self._banks[key][name] = list(items)
        self._last_used[key] = name

        if self._store is None:
            return False
        try:
            self._store.put(key, name, list(items))
            return True
        except TransportError as e:
            self.logger.error(f"Bank '{name}' kept in memory only: {e}")
            return False

    def hydrate(self, records: Iterable[Tuple[str, str, List[Question]]]) -> int:
        """
        Load previously persisted banks at startup.

        A group created here points its last used bank at its first
        hydrated bank.

        Args:
            records: (group_id, bank_name, questions) tuples

        Returns:
            Number of banks loaded
        """
        loaded = 0
        hydrated_groups = set()
        for group_id, name, items in records:
            if not items:
                continue
            key = str(group_id)
            if key not in self._banks:
                self.ensure_group(key)
                hydrated_groups.add(key)
                self._last_used.pop(key, None)
            self._banks[key][name] = list(items)
            if key in hydrated_groups and key not in self._last_used:
                self._last_used[key] = name
            loaded += 1

        if loaded:
            self.logger.info(f"Loaded {loaded} bank file(s) from disk")
        return loaded

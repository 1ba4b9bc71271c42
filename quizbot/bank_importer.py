"""
Admin-only CSV import of question banks.
"""
import logging
import os
from typing import Any, Dict, Optional

from .bank_registry import BankRegistry
from .csv_parser import CsvBankParser
from .errors import AuthorizationError, BankParseError, EmptyBankError, TransportError

ADMIN_ONLY_MESSAGE = "⛔ **Admin only:** You need the Administrator permission to use `/quiz import`."


def default_bank_name(filename: str) -> str:
    """Attachment file name with its final extension removed."""
    stem, _ = os.path.splitext(filename or "")
    return stem or (filename or "")


class BankImporter:
    """
    Fetches an uploaded CSV, parses it, and registers the result as a bank.

    Collaborators:
        auth: ``is_admin(caller)``
        fetcher: async ``fetch(url)`` returning the body text; raises
            TransportError on failure
    """

    def __init__(self, registry: BankRegistry, auth, fetcher, parser: Optional[CsvBankParser] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry
        self.auth = auth
        self.fetcher = fetcher
        self.parser = parser or CsvBankParser()

    def check_admin(self, caller) -> None:
        """
        Raises:
            AuthorizationError: If the caller lacks the administrator capability
        """
        if not self.auth.is_admin(caller):
            raise AuthorizationError("Administrator permission required for import")

    async def import_bank(
        self,
        group_id,
        caller,
        url: str,
        filename: str,
        name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Import a CSV attachment as a named bank.

        The admin check happens before any fetch or parse.

        Args:
            group_id: Group that will own the bank
            caller: Platform caller, handed to the auth collaborator
            url: Where to fetch the CSV from
            filename: Attachment name; its stem is the default bank name
            name: Optional explicit bank name

        Returns:
            Dictionary with operation results
        """
        try:
            self.check_admin(caller)
        except AuthorizationError as e:
            self.logger.info(f"Rejected import from non-admin in group {group_id}: {e}")
            return {'success': False, 'error': str(e), 'user_message': ADMIN_ONLY_MESSAGE}

        bank_name = (name or "").strip() or default_bank_name(filename)

        try:
            text = await self.fetcher.fetch(url)
            result = self.parser.parse(text)
            if not result.items:
                raise EmptyBankError(result.meta.headers, result.meta.row_count)
        except EmptyBankError as e:
            self.logger.warning(f"Import of '{bank_name}' for group {group_id} produced no questions: {e}")
            return {
                'success': False,
                'error': str(e),
                'bank_name': bank_name,
                'user_message': (
                    f"⚠️ No valid rows found.\n"
                    f"Detected headers: `{' | '.join(e.headers)}`\n"
                    f"Rows read: {e.row_count}\n"
                    f"Hint: include **question**, **options (or a|b|c...)**, **answer**."
                )
            }
        except (BankParseError, TransportError) as e:
            self.logger.warning(f"Import of '{bank_name}' for group {group_id} failed: {e}")
            return {
                'success': False,
                'error': str(e),
                'bank_name': bank_name,
                'user_message': f"❌ Import failed: {e}"
            }

        persisted = self.registry.put_bank(group_id, bank_name, result.items)
        count = len(result.items)
        self.logger.info(f"Imported {count} questions into bank '{bank_name}' for group {group_id}")

        user_message = (
            f"✅ Imported **{count}** questions into bank **{bank_name}**. "
            f"Try: `/quiz start bank:{bank_name}`"
        )
        if not persisted:
            user_message += "\n⚠️ The bank could not be saved to disk and will be lost on restart."

        return {
            'success': True,
            'bank_name': bank_name,
            'question_count': count,
            'persisted': persisted,
            'user_message': user_message
        }

"""
Unit tests for the admin-only CSV import flow.
"""
import unittest
from unittest.mock import Mock

from quizbot.bank_importer import ADMIN_ONLY_MESSAGE, BankImporter, default_bank_name
from quizbot.bank_registry import BankRegistry
from quizbot.errors import TransportError
from tests.test_fixtures import FakeAuth, FakeFetcher, TestFixtures, async_test

GROUP = "999"
URL = "https://cdn.example.com/attachments/unit.csv"


class TestDefaultBankName(unittest.TestCase):

    def test_extension_is_removed(self):
        self.assertEqual(default_bank_name("cardio.csv"), "cardio")
        self.assertEqual(default_bank_name("unit.2.csv"), "unit.2")
        self.assertEqual(default_bank_name("noext"), "noext")


class TestBankImporter(unittest.TestCase):

    def setUp(self):
        self.store = Mock()
        self.registry = BankRegistry(self.store)
        self.auth = FakeAuth(admin=True)
        self.fetcher = FakeFetcher(TestFixtures.create_letter_csv())
        self.importer = BankImporter(self.registry, self.auth, self.fetcher)

    @async_test
    async def test_non_admin_is_rejected_before_fetch(self):
        self.auth.admin = False

        result = await self.importer.import_bank(GROUP, "caller", URL, "unit.csv")

        self.assertFalse(result['success'])
        self.assertEqual(result['user_message'], ADMIN_ONLY_MESSAGE)
        self.assertEqual(self.fetcher.urls, [])
        self.assertIsNone(self.registry.get_bank(GROUP, "unit"))

    @async_test
    async def test_successful_import(self):
        result = await self.importer.import_bank(GROUP, "caller", URL, "unit.csv")

        self.assertTrue(result['success'])
        self.assertEqual(result['bank_name'], "unit")
        self.assertEqual(result['question_count'], 2)
        self.assertTrue(result['persisted'])
        self.assertEqual(
            result['user_message'],
            "✅ Imported **2** questions into bank **unit**. Try: `/quiz start bank:unit`"
        )
        self.assertEqual(len(self.registry.get_bank(GROUP, "unit")), 2)
        self.assertEqual(self.registry.get_last_used(GROUP), "unit")
        self.assertEqual(self.fetcher.urls, [URL])

    @async_test
    async def test_explicit_name_wins(self):
        result = await self.importer.import_bank(GROUP, "caller", URL, "unit.csv", name="  Cardio  ")
        self.assertEqual(result['bank_name'], "Cardio")

    @async_test
    async def test_empty_result_reports_diagnostics(self):
        self.fetcher.body = "question,options,answer\n,a|b,A\nQ,a,A\n"

        result = await self.importer.import_bank(GROUP, "caller", URL, "unit.csv")

        self.assertFalse(result['success'])
        self.assertIn("⚠️ No valid rows found.", result['user_message'])
        self.assertIn("Detected headers: `question | options | answer`", result['user_message'])
        self.assertIn("Rows read: 2", result['user_message'])
        self.store.put.assert_not_called()

    @async_test
    async def test_header_only_csv_stores_nothing(self):
        self.fetcher.body = "question,options,answer\n"

        result = await self.importer.import_bank(GROUP, "caller", URL, "unit.csv")

        self.assertFalse(result['success'])
        self.assertIn("Rows read: 0", result['user_message'])
        self.assertIsNone(self.registry.get_bank(GROUP, "unit"))
        self.store.put.assert_not_called()

    @async_test
    async def test_bad_headers_are_reported(self):
        self.fetcher.body = "title,body\nx,y\n"

        result = await self.importer.import_bank(GROUP, "caller", URL, "unit.csv")

        self.assertFalse(result['success'])
        self.assertTrue(result['user_message'].startswith("❌ Import failed: Headers must include"))

    @async_test
    async def test_header_only_csv_with_bad_headers_names_columns(self):
        self.fetcher.body = "title,body\n"

        result = await self.importer.import_bank(GROUP, "caller", URL, "unit.csv")

        self.assertFalse(result['success'])
        self.assertIn("Detected: title | body", result['user_message'])
        self.store.put.assert_not_called()

    @async_test
    async def test_superscript_answer_keeps_valid_rows(self):
        self.fetcher.body = "question,options,answer\nQ1,Yes|No,²\nQ2,Yes|No,A\n"

        result = await self.importer.import_bank(GROUP, "caller", URL, "unit.csv")

        self.assertTrue(result['success'])
        self.assertEqual(result['question_count'], 1)

    @async_test
    async def test_fetch_failure_is_reported(self):
        self.fetcher.error = TransportError("HTTP 404")

        result = await self.importer.import_bank(GROUP, "caller", URL, "unit.csv")

        self.assertFalse(result['success'])
        self.assertEqual(result['user_message'], "❌ Import failed: HTTP 404")

    @async_test
    async def test_persistence_failure_keeps_bank_in_memory(self):
        self.store.put.side_effect = TransportError("disk full")

        result = await self.importer.import_bank(GROUP, "caller", URL, "unit.csv")

        self.assertTrue(result['success'])
        self.assertFalse(result['persisted'])
        self.assertIn("could not be saved", result['user_message'])
        self.assertIsNotNone(self.registry.get_bank(GROUP, "unit"))


if __name__ == '__main__':
    unittest.main()

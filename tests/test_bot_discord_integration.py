"""
Unit tests for Discord bot command handlers with mocked Discord API.
"""
import shutil
import tempfile
import unittest
from unittest.mock import AsyncMock, Mock

import discord

from quizbot.bank_registry import BankRegistry
from quizbot.bank_store import BankStore
from quizbot.bot import HELP_TEXT, NO_BANKS_TEXT, BankSelectView, QuizBot, format_bank_list
from tests.test_fixtures import MockDiscordObjects, TestFixtures, async_test


class TestBotSetup(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    @async_test
    async def test_setup_hook_wires_components_and_hydrates(self):
        BankStore(self.temp_dir).put("42", "unit", TestFixtures.create_sample_questions())
        bot = QuizBot({'quiz': {'data_directory': self.temp_dir, 'window_seconds': 30}})

        await bot.setup_hook()

        self.assertEqual(len(bot.bank_registry.get_bank("42", "unit")), 4)
        self.assertEqual(bot.bank_registry.get_last_used("42"), "unit")
        self.assertEqual(bot.quiz_controller.window_seconds, 30)
        self.assertIsNotNone(bot.tree.get_command("ping"))
        quiz = bot.tree.get_command("quiz")
        self.assertEqual(
            sorted(c.name for c in quiz.commands),
            ["help", "import", "list", "score", "start", "stop"]
        )


class TestDiscordBotIntegration(unittest.TestCase):
    """Test command handlers against mocked interactions."""

    async def async_setUp(self):
        self.bot = QuizBot()
        self.bot.bank_registry = BankRegistry()
        self.bot.quiz_controller = Mock()
        self.bot.quiz_controller.start_quiz.return_value = {
            'success': True,
            'bank_name': 'sample',
            'total_questions': 3,
            'user_message': "🎬 **Quiz starting!** 3 questions."
        }
        self.bot.quiz_controller.render_scoreboard = AsyncMock(return_value="📊 No scores yet.")
        self.bot.bank_importer = Mock()
        self.bot.bank_importer.import_bank = AsyncMock(return_value={
            'success': True,
            'user_message': "✅ Imported **2** questions into bank **unit**."
        })
        self.interaction = MockDiscordObjects.create_mock_interaction()

    @async_test
    async def test_start_announces_and_launches_driver(self):
        await self.async_setUp()

        await self.bot.handle_start(self.interaction, "sample", 3)

        self.bot.quiz_controller.start_quiz.assert_called_once_with(12345, 999, "sample", 3)
        self.interaction.response.send_message.assert_awaited_once_with(
            "🎬 **Quiz starting!** 3 questions.", ephemeral=False
        )
        self.bot.quiz_controller.start_quiz_presentation.assert_called_once_with(12345)

    @async_test
    async def test_start_failure_is_ephemeral(self):
        await self.async_setUp()
        self.bot.quiz_controller.start_quiz.return_value = {
            'success': False,
            'user_message': "⚠️ A quiz is already running in this channel."
        }

        await self.bot.handle_start(self.interaction)

        self.interaction.response.send_message.assert_awaited_once_with(
            "⚠️ A quiz is already running in this channel.", ephemeral=True
        )
        self.bot.quiz_controller.start_quiz_presentation.assert_not_called()

    @async_test
    async def test_start_offers_bank_selection(self):
        await self.async_setUp()
        self.bot.quiz_controller.start_quiz.return_value = {
            'success': False,
            'needs_selection': True,
            'banks': [("a", 3), ("b", 5)],
            'user_message': "Please choose a bank to start:"
        }

        await self.bot.handle_start(self.interaction)

        args, kwargs = self.interaction.response.send_message.call_args
        self.assertEqual(args, ("Please choose a bank to start:",))
        self.assertTrue(kwargs['ephemeral'])
        view = kwargs['view']
        self.assertIsInstance(view, BankSelectView)
        select = view.children[0]
        self.assertEqual(select.custom_id, "bank_select")
        self.assertEqual([o.value for o in select.options], ["a", "b"])
        self.assertEqual(select.options[1].description, "5 questions")

    @async_test
    async def test_bank_selection_starts_quiz(self):
        await self.async_setUp()
        view = BankSelectView(self.bot, self.interaction, [("a", 3)], desired_count=2)
        picker = MockDiscordObjects.create_mock_interaction()
        picker.response.is_done.return_value = True

        await view.pick(picker, "a")

        picker.response.edit_message.assert_awaited_once_with(content="Starting **a**…", view=None)
        self.bot.quiz_controller.start_quiz.assert_called_once_with(12345, 999, "a", 2)
        picker.followup.send.assert_awaited_once_with("🎬 **Quiz starting!** 3 questions.", ephemeral=False)
        self.assertTrue(view.is_finished())

    @async_test
    async def test_bank_selection_timeout(self):
        await self.async_setUp()
        view = BankSelectView(self.bot, self.interaction, [("a", 3)])

        await view.on_timeout()

        self.interaction.edit_original_response.assert_awaited_once_with(content="⏰ No bank selected.", view=None)

    @async_test
    async def test_stop(self):
        await self.async_setUp()
        self.bot.quiz_controller.stop_quiz.return_value = {
            'success': True,
            'user_message': "🛑 **Quiz stopped.** Scoreboard cleared for this channel."
        }

        await self.bot.handle_stop(self.interaction)

        self.interaction.response.send_message.assert_awaited_once_with(
            "🛑 **Quiz stopped.** Scoreboard cleared for this channel.", ephemeral=False
        )

    @async_test
    async def test_score_defers_then_follows_up(self):
        await self.async_setUp()

        await self.bot.handle_score(self.interaction)

        self.interaction.response.defer.assert_awaited_once()
        self.interaction.followup.send.assert_awaited_once_with("📊 No scores yet.")

    @async_test
    async def test_list_shows_sample_bank(self):
        await self.async_setUp()

        await self.bot.handle_list(self.interaction)

        self.interaction.response.send_message.assert_awaited_once_with("• **sample** - 3 q", ephemeral=True)

    @async_test
    async def test_import_passes_attachment(self):
        await self.async_setUp()
        attachment = Mock(spec=discord.Attachment)
        attachment.url = "https://cdn.example.com/unit.csv"
        attachment.filename = "unit.csv"

        await self.bot.handle_import(self.interaction, attachment, None)

        self.bot.bank_importer.import_bank.assert_awaited_once_with(
            999, self.interaction, "https://cdn.example.com/unit.csv", "unit.csv", None
        )
        self.interaction.followup.send.assert_awaited_once_with(
            "✅ Imported **2** questions into bank **unit**.", ephemeral=True
        )

    @async_test
    async def test_help(self):
        await self.async_setUp()

        await self.bot.handle_help(self.interaction)

        self.interaction.response.send_message.assert_awaited_once_with(HELP_TEXT, ephemeral=True)

    @async_test
    async def test_expired_interaction_error_is_ignored(self):
        await self.async_setUp()
        error = Mock()
        error.original = MockDiscordObjects.create_http_error(404, 10062, discord.NotFound)

        await self.bot.on_app_command_error(self.interaction, error)

        self.interaction.response.send_message.assert_not_called()
        self.interaction.followup.send.assert_not_called()

    @async_test
    async def test_unexpected_command_error_is_reported(self):
        await self.async_setUp()
        error = Mock()
        error.original = RuntimeError("boom")

        await self.bot.on_app_command_error(self.interaction, error)

        kwargs = self.interaction.response.send_message.call_args.kwargs
        self.assertTrue(kwargs['ephemeral'])
        self.assertEqual(kwargs['embed'].title, "❌ Error")


class TestFormatBankList(unittest.TestCase):

    def test_empty(self):
        self.assertEqual(format_bank_list([]), NO_BANKS_TEXT)

    def test_entries(self):
        self.assertEqual(format_bank_list([("a", 1), ("b", 20)]), "• **a** - 1 q\n• **b** - 20 q")


if __name__ == '__main__':
    unittest.main()

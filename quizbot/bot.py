"""
discord.py host for the quiz bot: slash commands and component wiring.
"""
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

import discord
from discord import app_commands
from discord.ext import commands

from .bank_importer import BankImporter
from .bank_registry import BankRegistry
from .bank_store import BankStore
from .config_manager import ConfigManager
from .discord_adapters import (
    DiscordAuthContext,
    DiscordIdentityResolver,
    DiscordNotifier,
    DiscordPresenter,
    HttpAttachmentFetcher,
    UNKNOWN_INTERACTION,
)
from .quiz_controller import QuizController

logger = logging.getLogger(__name__)

BANK_SELECT_TIMEOUT = 20
MAX_SELECT_OPTIONS = 25

HELP_TEXT = "\n".join([
    "**/quiz start** `bank:<name>` `count:<n>` – start a quiz (randomized).",
    "**/quiz stop** – stop the current quiz in this channel.",
    "**/quiz score** – show current scoreboard.",
    "**/quiz list** – list available banks.",
    "**/quiz import** `file:<csv>` `name:<optional>` – **admin only**.",
    "",
    "CSV tips:",
    "• Use headers like: `question, correct, rationale, a, b, c, d`  **or**",
    "• `question,type,options,answer,explanation` (options pipe-separated like `A|B|C|D`).",
    "• Answers can be letters (`A;C`), numbers (`1;3`), or exact option text.",
])
NO_BANKS_TEXT = "No banks yet. Use `/quiz import` (admin only)."


def format_bank_list(banks: List[Tuple[str, int]]) -> str:
    if not banks:
        return NO_BANKS_TEXT
    return "\n".join(f"• **{name}** - {size} q" for name, size in banks)


class BankSelect(discord.ui.Select):
    """Drop-down of the group's banks, shown when no bank can be picked automatically."""

    def __init__(self, banks: List[Tuple[str, int]]):
        options = [
            discord.SelectOption(label=name, value=name, description=f"{size} questions")
            for name, size in banks[:MAX_SELECT_OPTIONS]
        ]
        super().__init__(custom_id="bank_select", placeholder="Choose a question bank", options=options)

    async def callback(self, interaction: discord.Interaction):
        await self.view.pick(interaction, self.values[0])


class BankSelectView(discord.ui.View):
    def __init__(self, bot: "QuizBot", origin: discord.Interaction, banks: List[Tuple[str, int]],
                 desired_count: Optional[int] = None):
        super().__init__(timeout=BANK_SELECT_TIMEOUT)
        self.bot = bot
        self.origin = origin
        self.desired_count = desired_count
        self.picked: Optional[str] = None
        self.add_item(BankSelect(banks))

    async def pick(self, interaction: discord.Interaction, bank_name: str):
        if self.picked is not None:
            return
        self.picked = bank_name
        self.stop()
        await interaction.response.edit_message(content=f"Starting **{bank_name}**…", view=None)
        await self.bot.begin_quiz(interaction, bank_name, self.desired_count)

    async def on_timeout(self):
        if self.picked is not None:
            return
        try:
            await self.origin.edit_original_response(content="⏰ No bank selected.", view=None)
        except discord.HTTPException as e:
            logger.debug(f"Could not update expired bank selection: {e}")


class QuizBot(commands.Bot):
    """Discord bot running channel quizzes over imported question banks."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        # Slash commands and components only need the guilds intent
        intents = discord.Intents.none()
        intents.guilds = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.config_manager: Optional[ConfigManager] = None
        self.bank_store: Optional[BankStore] = None
        self.bank_registry: Optional[BankRegistry] = None
        self.quiz_controller: Optional[QuizController] = None
        self.bank_importer: Optional[BankImporter] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager.from_config(self.app_config)
            self.bank_store = BankStore(self.config_manager.get_data_directory())
            self.bank_registry = BankRegistry(self.bank_store)
            self.load_banks()

            self.quiz_controller = QuizController(
                self.bank_registry,
                DiscordPresenter(self),
                DiscordNotifier(self),
                identity_resolver=DiscordIdentityResolver(self),
                window_seconds=self.config_manager.get_window_seconds()
            )
            self.bank_importer = BankImporter(self.bank_registry, DiscordAuthContext(), HttpAttachmentFetcher())

            self.setup_commands()
            self.tree.error(self.on_app_command_error)

            logger.info(self.config_manager.get_settings_summary())
            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def load_banks(self) -> int:
        """Hydrate the registry from the data directory."""
        loaded = self.bank_registry.hydrate(self.bank_store.list_all())
        summary = self.bank_store.get_loading_summary()
        logger.info(f"Loaded {loaded} banks from {summary['data_directory']}")
        for error in summary['errors']:
            logger.warning(f"Skipped bank file: {error}")
        return loaded

    def setup_commands(self):
        """Register /ping and the /quiz command group."""
        max_count = self.config_manager.get_max_question_count()

        @self.tree.command(name="ping", description="Check that the bot is alive")
        async def ping_command(interaction: discord.Interaction):
            await interaction.response.send_message("Pong! 🏓")

        quiz = app_commands.Group(name="quiz", description="Study quiz commands", guild_only=True)

        @quiz.command(name="start", description="Start a quiz (randomized)")
        @app_commands.describe(bank="Bank name (defaults to the last used bank)", count="Number of questions")
        async def start_command(interaction: discord.Interaction, bank: Optional[str] = None,
                                count: Optional[app_commands.Range[int, 1, max_count]] = None):
            await self.handle_start(interaction, bank, count)

        @quiz.command(name="stop", description="Stop the current quiz in this channel")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @quiz.command(name="score", description="Show the current scoreboard")
        async def score_command(interaction: discord.Interaction):
            await self.handle_score(interaction)

        @quiz.command(name="list", description="List available banks")
        async def list_command(interaction: discord.Interaction):
            await self.handle_list(interaction)

        @quiz.command(name="import", description="Import a CSV as a question bank (admin only)")
        @app_commands.describe(file="CSV file", name="Bank name (defaults to the file name)")
        async def import_command(interaction: discord.Interaction, file: discord.Attachment,
                                 name: Optional[str] = None):
            await self.handle_import(interaction, file, name)

        @quiz.command(name="help", description="How to use the quiz bot")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        self.tree.add_command(quiz)
        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

        try:
            guild_id = self.config_manager.get_guild_id()
            if guild_id is not None:
                guild = discord.Object(id=guild_id)
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                logger.info(f"Synced {len(synced)} slash commands to guild {guild_id}")
            else:
                synced = await self.tree.sync()
                logger.info(f"Synced {len(synced)} slash commands globally")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def on_app_command_error(self, interaction: discord.Interaction,
                                   error: app_commands.AppCommandError):
        """Last resort for slash command failures."""
        original = getattr(error, 'original', error)
        if isinstance(original, discord.NotFound) and original.code == UNKNOWN_INTERACTION:
            logger.debug(f"Ignoring expired interaction for /{interaction.command.qualified_name if interaction.command else '?'}")
            return
        logger.error(f"Slash command error: {error}", exc_info=original)
        await self.send_error_response(interaction, "An unexpected error occurred. Please try again.")

    # Command handlers

    async def handle_start(self, interaction: discord.Interaction, bank: Optional[str] = None,
                           count: Optional[int] = None):
        """Handle /quiz start"""
        result = self.quiz_controller.start_quiz(interaction.channel_id, interaction.guild_id, bank, count)

        if result.get('needs_selection'):
            view = BankSelectView(self, interaction, result['banks'], count)
            await interaction.response.send_message(result['user_message'], view=view, ephemeral=True)
            return

        await self._announce_start(interaction, result)

    async def begin_quiz(self, interaction: discord.Interaction, bank_name: str, count: Optional[int] = None):
        """Start a quiz once a bank was picked from the select menu."""
        result = self.quiz_controller.start_quiz(interaction.channel_id, interaction.guild_id, bank_name, count)
        await self._announce_start(interaction, result)

    async def _announce_start(self, interaction: discord.Interaction, result: Dict[str, Any]):
        if not result['success']:
            await self.send_response(interaction, result['user_message'], ephemeral=True)
            return

        try:
            await self.send_response(interaction, result['user_message'])
        except discord.HTTPException as e:
            # The session still runs; questions go to the channel directly
            logger.warning(f"Could not announce quiz start in channel {interaction.channel_id}: {e}")
        self.quiz_controller.start_quiz_presentation(interaction.channel_id)

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /quiz stop"""
        result = self.quiz_controller.stop_quiz(interaction.channel_id)
        await interaction.response.send_message(result['user_message'], ephemeral=not result['success'])

    async def handle_score(self, interaction: discord.Interaction):
        """Handle /quiz score"""
        # Name lookups may outlast the initial response deadline
        await interaction.response.defer(thinking=True)
        text = await self.quiz_controller.render_scoreboard(interaction.channel_id)
        await interaction.followup.send(text)

    async def handle_list(self, interaction: discord.Interaction):
        """Handle /quiz list"""
        banks = self.bank_registry.list_banks(interaction.guild_id)
        await interaction.response.send_message(format_bank_list(banks), ephemeral=True)

    async def handle_import(self, interaction: discord.Interaction, file: discord.Attachment,
                            name: Optional[str] = None):
        """Handle /quiz import"""
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bank_importer.import_bank(
            interaction.guild_id, interaction, file.url, file.filename, name
        )
        await interaction.followup.send(result['user_message'], ephemeral=True)

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /quiz help"""
        await interaction.response.send_message(HELP_TEXT, ephemeral=True)

    # Response helpers

    async def send_response(self, interaction: discord.Interaction, message: str, ephemeral: bool = False):
        """Reply to an interaction, falling back to a followup once it was answered."""
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(message, ephemeral=ephemeral)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            embed.set_footer(text="If this error persists, try /quiz help")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")


async def run_bot(token: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Discord Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()

"""
discord.py implementations of the controller's collaborators.
"""
import logging
from typing import Dict, Optional

import discord
import httpx

from .errors import ExpiredInteractionError, TransportError
from .models import AnswerOutcome, CloseReason, Question, Response
from .quiz_engine import CollectionWindow

logger = logging.getLogger(__name__)

UNKNOWN_INTERACTION = 10062
BUTTONS_PER_ROW = 5
ALREADY_ADVANCED_MESSAGE = "This question already advanced. ⏭️"


def option_letter(index: int) -> str:
    return chr(65 + index)


def build_question_embed(question: Question, index: int, total: int, seconds: float) -> discord.Embed:
    """
    Render a question as an embed.

    Args:
        question: Question to render
        index: Zero-based position in the session
        total: Number of questions in the session
        seconds: Collection window length, shown in the footer
    """
    lines = [f"{option_letter(i)}. {text}" for i, text in enumerate(question.options)]
    embed = discord.Embed(
        title=f"Question {index + 1}/{total}",
        description=f"**{question.prompt}**\n\n" + "\n".join(lines),
        color=0x5865f2
    )
    embed.set_footer(text=f"Timer: {seconds:g}s • First correct click scores")
    return embed


def format_outcome(outcome: AnswerOutcome) -> str:
    verdict = "✅ Correct!" if outcome.correct else "❌ Incorrect!"
    return f"{verdict}  **Answer:** {outcome.correct_letters}\n> {outcome.rationale or '—'}"


def translate_http_error(error: discord.HTTPException, operation: str) -> Exception:
    """Map a discord.py HTTP failure onto the quiz bot's error taxonomy."""
    if isinstance(error, discord.NotFound) and error.code == UNKNOWN_INTERACTION:
        return ExpiredInteractionError(f"Interaction expired during {operation}")
    return TransportError(f"Discord API error during {operation}: {error}")


async def resolve_channel(client: discord.Client, channel_id: int):
    channel = client.get_channel(channel_id)
    if channel is None:
        channel = await client.fetch_channel(channel_id)
    return channel


class AnswerButton(discord.ui.Button):
    """One option of the current question."""

    def __init__(self, index: int):
        super().__init__(
            style=discord.ButtonStyle.secondary,
            label=option_letter(index),
            custom_id=f"opt_{index}",
            row=index // BUTTONS_PER_ROW
        )
        self.index = index

    async def callback(self, interaction: discord.Interaction):
        view: AnswerView = self.view
        response = Response(responder_id=interaction.user.id, chosen_index=self.index, context=interaction)
        if not view.window.submit(response):
            try:
                await view.presenter.reject_response(response)
            except ExpiredInteractionError:
                logger.debug("Late click on an expired interaction ignored")


class AnswerView(discord.ui.View):
    """Option buttons feeding a collection window. Timing belongs to the window."""

    def __init__(self, question: Question, window: CollectionWindow, presenter: "DiscordPresenter"):
        super().__init__(timeout=None)
        self.window = window
        self.presenter = presenter
        for index in range(len(question.options)):
            self.add_item(AnswerButton(index))

    async def on_error(self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item):
        logger.error(f"Error handling answer click in channel {interaction.channel_id}: {error}", exc_info=error)


class DiscordPresenter:
    """Posts questions to a channel and reports outcomes through button interactions."""

    def __init__(self, client: discord.Client):
        self.client = client
        self._views: Dict[int, AnswerView] = {}

    async def present(self, channel_id: int, question: Question, index: int, total: int,
                      seconds: float) -> discord.Message:
        """
        Send the question embed.

        Returns:
            The posted message, used as the window handle

        Raises:
            TransportError: If the channel cannot be reached
        """
        try:
            channel = await resolve_channel(self.client, channel_id)
            return await channel.send(embed=build_question_embed(question, index, total, seconds))
        except discord.HTTPException as e:
            raise translate_http_error(e, "present") from e

    async def open_collection_window(self, handle: discord.Message, question: Question,
                                     window: CollectionWindow) -> None:
        view = AnswerView(question, window, self)
        try:
            await handle.edit(view=view)
        except discord.HTTPException as e:
            view.stop()
            raise translate_http_error(e, "open_collection_window") from e
        self._views[handle.id] = view

    async def close_window(self, handle: discord.Message, reason: CloseReason) -> None:
        """Detach the buttons. An answered question was already replaced by its outcome."""
        view = self._views.pop(handle.id, None)
        if view is not None:
            view.stop()
        if reason is CloseReason.ANSWERED:
            return
        try:
            await handle.edit(view=None)
        except discord.HTTPException as e:
            raise translate_http_error(e, "close_window") from e

    async def report_outcome(self, response: Response, outcome: AnswerOutcome) -> None:
        """Replace the question message with the outcome of the first response."""
        interaction: discord.Interaction = response.context
        try:
            await interaction.response.edit_message(content=format_outcome(outcome), embed=None, view=None)
        except discord.HTTPException as e:
            raise translate_http_error(e, "report_outcome") from e

    async def reject_response(self, response: Response) -> None:
        interaction: discord.Interaction = response.context
        try:
            if interaction.response.is_done():
                await interaction.followup.send(ALREADY_ADVANCED_MESSAGE, ephemeral=True)
            else:
                await interaction.response.send_message(ALREADY_ADVANCED_MESSAGE, ephemeral=True)
        except discord.HTTPException as e:
            raise translate_http_error(e, "reject_response") from e


class DiscordNotifier:
    """Posts plain status messages to a channel."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def notify(self, channel_id: int, text: str) -> None:
        try:
            channel = await resolve_channel(self.client, channel_id)
            await channel.send(text)
        except discord.HTTPException as e:
            raise translate_http_error(e, "notify") from e


class DiscordIdentityResolver:
    """Resolves user ids to display names for the scoreboard."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def resolve(self, user_id: int) -> Optional[str]:
        user = self.client.get_user(user_id)
        if user is None:
            user = await self.client.fetch_user(user_id)
        return user.name if user else None


class DiscordAuthContext:
    """Administrator check against the invoking member's resolved permissions."""

    @staticmethod
    def is_admin(interaction: discord.Interaction) -> bool:
        permissions = interaction.permissions
        return bool(permissions and permissions.administrator)


class HttpAttachmentFetcher:
    """Downloads attachment bodies over HTTP."""

    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, url: str) -> str:
        """
        Fetch an attachment as text.

        Raises:
            TransportError: On a non-2xx status or a network failure
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPStatusError as e:
            raise TransportError(f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Attachment download failed: {e}") from e

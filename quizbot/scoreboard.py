"""
Scoreboard ranking and rendering.
"""
import logging
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

NO_SCORES_MESSAGE = "📊 No scores yet."


def rank_scores(scoreboard: Dict[int, int]) -> List[Tuple[int, int]]:
    """Sort by score descending; ties keep insertion order (sorted is stable)."""
    return sorted(scoreboard.items(), key=lambda entry: entry[1], reverse=True)


class ScoreboardFormatter:
    """Read-only renderer over a session's scoreboard."""

    def __init__(self, identity_resolver=None):
        """
        Args:
            identity_resolver: Collaborator with async ``resolve(user_id)``
                returning a display name
        """
        self.identity_resolver = identity_resolver

    async def display_name(self, user_id: int) -> str:
        if self.identity_resolver is None:
            return f"User {user_id}"
        try:
            name = await self.identity_resolver.resolve(user_id)
        except Exception as e:
            logger.debug(f"Could not resolve user {user_id}: {e}")
            name = None
        return name or f"User {user_id}"

    async def render(self, scoreboard: Optional[Dict[int, int]]) -> str:
        """
        Render a 1-indexed ranked list.

        Args:
            scoreboard: user id -> points; None or empty renders the
                "no scores" message

        Returns:
            Message text
        """
        if not scoreboard:
            return NO_SCORES_MESSAGE

        lines = []
        for rank, (user_id, points) in enumerate(rank_scores(scoreboard), start=1):
            name = await self.display_name(user_id)
            lines.append(f"{rank}. **{name}** - {points} pts")
        return "📊 **Scoreboard**\n" + "\n".join(lines)

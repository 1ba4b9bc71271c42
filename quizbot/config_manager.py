"""
Configuration manager for quiz bot runtime settings.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Optional


class ConfigManager:
    """Holds validated runtime settings for the bot."""

    # Default configuration values
    DEFAULT_WINDOW_SECONDS = 20
    DEFAULT_DATA_DIRECTORY = "./data/"
    DEFAULT_MAX_QUESTION_COUNT = 100

    # Validation limits
    MIN_WINDOW_SECONDS = 5
    MAX_WINDOW_SECONDS = 300  # 5 minutes
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100

    SYSTEM_DIRECTORIES = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._window_seconds = self.DEFAULT_WINDOW_SECONDS
        self._data_directory = self.DEFAULT_DATA_DIRECTORY
        self._max_question_count = self.DEFAULT_MAX_QUESTION_COUNT
        self._guild_id: Optional[int] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ConfigManager":
        """
        Build a manager from the parsed ``config.json`` structure.

        Invalid values are logged and left at their defaults.

        Args:
            config: Mapping with optional ``bot`` and ``quiz`` sections
        """
        manager = cls()
        quiz_config = config.get('quiz', {})
        bot_config = config.get('bot', {})

        for key, setter in (
            ('window_seconds', manager.set_window_seconds),
            ('data_directory', manager.set_data_directory),
            ('max_question_count', manager.set_max_question_count),
        ):
            if key in quiz_config:
                result = setter(quiz_config[key])
                if not result['success']:
                    manager.logger.warning(f"Ignoring quiz.{key}: {result['error']}")

        if bot_config.get('guild_id') is not None:
            result = manager.set_guild_id(bot_config['guild_id'])
            if not result['success']:
                manager.logger.warning(f"Ignoring bot.guild_id: {result['error']}")

        return manager

    def _invalid(self, error_msg: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error_msg)
        return {
            'success': False,
            'error': error_msg,
            'user_message': user_message
        }

    def set_window_seconds(self, seconds: int) -> Dict[str, Any]:
        """
        Set the answer window length for each question.

        Args:
            seconds: Window duration in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(seconds, bool) or not isinstance(seconds, int):
            return self._invalid(
                f"Window duration must be an integer, got {type(seconds).__name__}",
                f"❌ Invalid input: Expected a number, got {type(seconds).__name__}"
            )

        if seconds < self.MIN_WINDOW_SECONDS:
            return self._invalid(
                f"Window duration must be at least {self.MIN_WINDOW_SECONDS} seconds",
                f"❌ Timer too short: Minimum is {self.MIN_WINDOW_SECONDS} seconds"
            )

        if seconds > self.MAX_WINDOW_SECONDS:
            return self._invalid(
                f"Window duration cannot exceed {self.MAX_WINDOW_SECONDS} seconds",
                f"❌ Timer too long: Maximum is {self.MAX_WINDOW_SECONDS} seconds ({self.MAX_WINDOW_SECONDS // 60} minutes)"
            )

        self._window_seconds = seconds
        self.logger.info(f"Window duration set to {seconds} seconds")
        return {
            'success': True,
            'message': f"Window duration set to {seconds} seconds",
            'user_message': f"✅ Timer set to {seconds} seconds"
        }

    def get_window_seconds(self) -> int:
        return self._window_seconds

    def set_data_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory where banks are persisted.

        Args:
            directory: Path to the data directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(directory, str):
            return self._invalid(
                f"Data directory must be a string, got {type(directory).__name__}",
                f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            )

        if not directory.strip():
            return self._invalid("Data directory cannot be empty", "❌ Directory path cannot be empty")

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            return self._invalid(
                f"Invalid directory path format: {e}",
                f"❌ Invalid path format: {directory}"
            )

        if any(normalized_path.startswith(sys_dir) for sys_dir in self.SYSTEM_DIRECTORIES):
            return self._invalid(
                f"Cannot use system directory: {normalized_path}",
                f"❌ Cannot use system directory: {directory}"
            )

        self._data_directory = normalized_path
        self.logger.info(f"Data directory set to {normalized_path}")
        return {
            'success': True,
            'message': f"Data directory set to {normalized_path}",
            'user_message': f"✅ Data directory set to {normalized_path}"
        }

    def get_data_directory(self) -> str:
        return self._data_directory

    def set_max_question_count(self, count: int) -> Dict[str, Any]:
        """
        Set the upper bound of the ``count`` option of ``/quiz start``.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(count, bool) or not isinstance(count, int):
            return self._invalid(
                f"Question count must be an integer, got {type(count).__name__}",
                f"❌ Invalid input: Expected a number, got {type(count).__name__}"
            )

        if count < self.MIN_QUESTION_COUNT:
            return self._invalid(
                f"Question count must be at least {self.MIN_QUESTION_COUNT}",
                f"❌ Too few questions: Minimum is {self.MIN_QUESTION_COUNT}"
            )

        if count > self.MAX_QUESTION_COUNT:
            return self._invalid(
                f"Question count cannot exceed {self.MAX_QUESTION_COUNT}",
                f"❌ Too many questions: Maximum is {self.MAX_QUESTION_COUNT}"
            )

        self._max_question_count = count
        self.logger.info(f"Max question count set to {count}")
        return {
            'success': True,
            'message': f"Max question count set to {count}",
            'user_message': f"✅ Up to {count} questions per quiz"
        }

    def get_max_question_count(self) -> int:
        return self._max_question_count

    def set_guild_id(self, guild_id) -> Dict[str, Any]:
        """
        Restrict command registration to one guild.

        Args:
            guild_id: Guild snowflake as int or numeric string
        """
        try:
            value = int(guild_id)
        except (TypeError, ValueError):
            return self._invalid(
                f"Guild id must be numeric, got {guild_id!r}",
                "❌ Invalid guild id"
            )

        self._guild_id = value
        self.logger.info(f"Commands will be registered to guild {value}")
        return {
            'success': True,
            'message': f"Guild id set to {value}",
            'user_message': f"✅ Guild id set to {value}"
        }

    def get_guild_id(self) -> Optional[int]:
        return self._guild_id

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._window_seconds = self.DEFAULT_WINDOW_SECONDS
        self._data_directory = self.DEFAULT_DATA_DIRECTORY
        self._max_question_count = self.DEFAULT_MAX_QUESTION_COUNT
        self._guild_id = None
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        if (not isinstance(self._window_seconds, int) or
                self._window_seconds < self.MIN_WINDOW_SECONDS or
                self._window_seconds > self.MAX_WINDOW_SECONDS):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid window duration: {self._window_seconds}")

        if (not isinstance(self._max_question_count, int) or
                self._max_question_count < self.MIN_QUESTION_COUNT or
                self._max_question_count > self.MAX_QUESTION_COUNT):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid max question count: {self._max_question_count}")

        if not isinstance(self._data_directory, str) or not self._data_directory.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid data directory: {self._data_directory}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        guild_str = str(self._guild_id) if self._guild_id is not None else "global"
        return (
            f"Quiz Settings:\n"
            f"• Timer: {self._window_seconds} seconds\n"
            f"• Max questions: {self._max_question_count}\n"
            f"• Data Directory: {self._data_directory}\n"
            f"• Command scope: {guild_str}"
        )

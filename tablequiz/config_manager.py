"""
Configuration manager for Times Table Quiz settings and parameters.
"""
import logging
from typing import Optional, Dict, Any, List
from pathlib import Path
from urllib.parse import urlparse

from .difficulty import MIN_TABLE, MAX_TABLE, is_valid_table
from .models import RoundSettings


class ConfigManager:
    """Manages game configuration and score service settings."""

    # Default configuration values
    DEFAULT_TABLE = 2
    DEFAULT_FEEDBACK_DELAY = 1.5
    DEFAULT_TICK_INTERVAL = 1.0
    DEFAULT_DATA_DIRECTORY = "./data/"
    DEFAULT_SERVICE_TIMEOUT = 10

    # Validation limits
    MIN_FEEDBACK_DELAY = 0.0
    MAX_FEEDBACK_DELAY = 10.0
    MIN_TICK_INTERVAL = 0.01
    MAX_TICK_INTERVAL = 5.0
    MIN_SERVICE_TIMEOUT = 1
    MAX_SERVICE_TIMEOUT = 60

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._round_settings = RoundSettings(
            feedback_delay=self.DEFAULT_FEEDBACK_DELAY,
            tick_interval=self.DEFAULT_TICK_INTERVAL
        )
        self._default_table = self.DEFAULT_TABLE
        self._data_directory = self.DEFAULT_DATA_DIRECTORY
        self._service_url: Optional[str] = None
        self._anon_key = ""
        self._service_timeout = self.DEFAULT_SERVICE_TIMEOUT

    def _failure(self, error_msg: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error_msg)
        return {
            'success': False,
            'error': error_msg,
            'user_message': user_message
        }

    def _success(self, message: str, user_message: str) -> Dict[str, Any]:
        self.logger.info(message)
        return {
            'success': True,
            'message': message,
            'user_message': user_message
        }

    def get_round_settings(self) -> RoundSettings:
        """
        Get current round settings.

        Returns:
            RoundSettings copy with current configuration
        """
        return RoundSettings(
            feedback_delay=self._round_settings.feedback_delay,
            tick_interval=self._round_settings.tick_interval,
            question_count=self._round_settings.question_count
        )

    def set_default_table(self, table: int) -> Dict[str, Any]:
        """
        Set the table offered when a player does not pick one.

        Args:
            table: Multiplication table, 2..10

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(table, int) or isinstance(table, bool):
            return self._failure(
                f"Default table must be an integer, got {type(table).__name__}",
                f"❌ Invalid input: Expected a number, got {type(table).__name__}"
            )

        if not is_valid_table(table):
            return self._failure(
                f"Default table must be between {MIN_TABLE} and {MAX_TABLE}",
                f"❌ Unknown table: Choose a table from {MIN_TABLE} to {MAX_TABLE}"
            )

        self._default_table = table
        return self._success(
            f"Default table set to {table}",
            f"✅ Default table set to {table}"
        )

    def get_default_table(self) -> int:
        return self._default_table

    def set_feedback_delay(self, delay: float) -> Dict[str, Any]:
        """
        Set how long answer feedback is shown before the next question.

        Args:
            delay: Delay in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(delay, bool) or not isinstance(delay, (int, float)):
            return self._failure(
                f"Feedback delay must be a number, got {type(delay).__name__}",
                f"❌ Invalid input: Expected a number, got {type(delay).__name__}"
            )

        if delay < self.MIN_FEEDBACK_DELAY or delay > self.MAX_FEEDBACK_DELAY:
            return self._failure(
                f"Feedback delay must be between {self.MIN_FEEDBACK_DELAY} and {self.MAX_FEEDBACK_DELAY} seconds",
                f"❌ Feedback delay must be between {self.MIN_FEEDBACK_DELAY:g} and {self.MAX_FEEDBACK_DELAY:g} seconds"
            )

        self._round_settings.feedback_delay = float(delay)
        return self._success(
            f"Feedback delay set to {delay} seconds",
            f"✅ Feedback shown for {delay:g} seconds"
        )

    def get_feedback_delay(self) -> float:
        return self._round_settings.feedback_delay

    def set_tick_interval(self, interval: float) -> Dict[str, Any]:
        """
        Set the length of one countdown tick.

        Args:
            interval: Seconds per tick

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(interval, bool) or not isinstance(interval, (int, float)):
            return self._failure(
                f"Tick interval must be a number, got {type(interval).__name__}",
                f"❌ Invalid input: Expected a number, got {type(interval).__name__}"
            )

        if interval < self.MIN_TICK_INTERVAL or interval > self.MAX_TICK_INTERVAL:
            return self._failure(
                f"Tick interval must be between {self.MIN_TICK_INTERVAL} and {self.MAX_TICK_INTERVAL} seconds",
                f"❌ Tick interval must be between {self.MIN_TICK_INTERVAL:g} and {self.MAX_TICK_INTERVAL:g} seconds"
            )

        self._round_settings.tick_interval = float(interval)
        return self._success(
            f"Tick interval set to {interval} seconds",
            f"✅ Timer ticks every {interval:g} seconds"
        )

    def get_tick_interval(self) -> float:
        return self._round_settings.tick_interval

    def set_score_service(self, base_url: str, anon_key: str = "",
                          timeout: int = DEFAULT_SERVICE_TIMEOUT) -> Dict[str, Any]:
        """
        Configure the account and score service.

        Args:
            base_url: Service root URL, http or https
            anon_key: Public key sent when no player is signed in
            timeout: Request timeout in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(base_url, str) or not base_url.strip():
            return self._failure(
                "Score service URL cannot be empty",
                "❌ Score service URL cannot be empty"
            )

        parsed = urlparse(base_url.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return self._failure(
                f"Invalid score service URL: {base_url}",
                f"❌ Invalid URL: {base_url}"
            )

        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or \
                not self.MIN_SERVICE_TIMEOUT <= timeout <= self.MAX_SERVICE_TIMEOUT:
            return self._failure(
                f"Service timeout must be between {self.MIN_SERVICE_TIMEOUT} and {self.MAX_SERVICE_TIMEOUT} seconds",
                f"❌ Timeout must be between {self.MIN_SERVICE_TIMEOUT} and {self.MAX_SERVICE_TIMEOUT} seconds"
            )

        self._service_url = base_url.strip().rstrip('/')
        self._anon_key = anon_key or ""
        self._service_timeout = timeout
        return self._success(
            f"Score service set to {self._service_url}",
            "✅ Score service configured"
        )

    def get_score_service(self) -> Optional[Dict[str, Any]]:
        """
        Get score service connection settings.

        Returns:
            Dictionary with base_url, anon_key and timeout, or None if not configured
        """
        if self._service_url is None:
            return None
        return {
            'base_url': self._service_url,
            'anon_key': self._anon_key,
            'timeout': self._service_timeout
        }

    def set_data_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory where preferences and the session are stored.

        Args:
            directory: Path to the data directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(directory, str):
            return self._failure(
                f"Data directory must be a string, got {type(directory).__name__}",
                f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            )

        if not directory.strip():
            return self._failure(
                "Data directory cannot be empty",
                "❌ Directory path cannot be empty"
            )

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            return self._failure(
                f"Invalid directory path format: {e}",
                f"❌ Invalid path format: {directory}"
            )

        system_dirs = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']
        if any(normalized_path.startswith(sys_dir) for sys_dir in system_dirs):
            return self._failure(
                f"Cannot use system directory: {normalized_path}",
                f"❌ Cannot use system directory: {directory}"
            )

        self._data_directory = normalized_path
        return self._success(
            f"Data directory set to {normalized_path}",
            f"✅ Data directory set to {normalized_path}"
        )

    def get_data_directory(self) -> str:
        return self._data_directory

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the sections of a loaded config.json.

        Args:
            config: Parsed configuration dictionary

        Returns:
            User-friendly messages for every setting that was rejected
        """
        rejected = []
        game = config.get('game', {})
        service = config.get('score_service', {})
        storage = config.get('storage', {})

        results = []
        if 'default_table' in game:
            results.append(self.set_default_table(game['default_table']))
        if 'feedback_delay' in game:
            results.append(self.set_feedback_delay(game['feedback_delay']))
        if 'tick_interval' in game:
            results.append(self.set_tick_interval(game['tick_interval']))
        if service.get('base_url'):
            results.append(self.set_score_service(
                service['base_url'],
                service.get('anon_key', ""),
                service.get('timeout', self.DEFAULT_SERVICE_TIMEOUT)
            ))
        if 'data_directory' in storage:
            results.append(self.set_data_directory(storage['data_directory']))

        for result in results:
            if not result['success']:
                rejected.append(result['user_message'])
        return rejected

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._round_settings = RoundSettings(
            feedback_delay=self.DEFAULT_FEEDBACK_DELAY,
            tick_interval=self.DEFAULT_TICK_INTERVAL
        )
        self._default_table = self.DEFAULT_TABLE
        self._data_directory = self.DEFAULT_DATA_DIRECTORY
        self._service_url = None
        self._anon_key = ""
        self._service_timeout = self.DEFAULT_SERVICE_TIMEOUT
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

        if not is_valid_table(self._default_table):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid default table: {self._default_table}")

        delay = self._round_settings.feedback_delay
        if not isinstance(delay, (int, float)) or \
                not self.MIN_FEEDBACK_DELAY <= delay <= self.MAX_FEEDBACK_DELAY:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid feedback delay: {delay}")

        interval = self._round_settings.tick_interval
        if not isinstance(interval, (int, float)) or \
                not self.MIN_TICK_INTERVAL <= interval <= self.MAX_TICK_INTERVAL:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid tick interval: {interval}")

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
        service = self._service_url or "not configured"
        return (
            f"Game Settings:\n"
            f"• Default table: {self._default_table}\n"
            f"• Feedback delay: {self._round_settings.feedback_delay:g} seconds\n"
            f"• Timer tick: {self._round_settings.tick_interval:g} seconds\n"
            f"• Score service: {service}\n"
            f"• Data Directory: {self._data_directory}"
        )

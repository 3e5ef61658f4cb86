"""
Round session controller for the Times Table Quiz bot.
Manages the live round per Discord channel.
"""
import logging
import time
from typing import Dict, Optional, Callable, Any

from .audio import AudioManager
from .config_manager import ConfigManager
from .difficulty import MIN_TABLE, MAX_TABLE, is_valid_table
from .models import Question
from .question_generator import QuestionGenerator
from .quiz_engine import _maybe_await
from .round_controller import RoundController, InvalidRoundStateError
from .score_client import ScoreAccounts, ScoreClient


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when a channel already has a round in progress."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when operating on a channel with no round."""
    pass


class QuizController:
    """
    Orchestrates rounds across Discord channels.

    Each channel can have at most one live round. A round leaves the
    registry when it finishes or is stopped.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        audio: Optional[AudioManager] = None,
        score_accounts: Optional[ScoreAccounts] = None,
        generator: Optional[QuestionGenerator] = None
    ):
        """
        Initialize the quiz controller.

        Args:
            config_manager: Source of round settings
            audio: Shared audio collaborator
            score_accounts: Per-player score service clients, None to skip saving
            generator: Question generator shared by all rounds
        """
        self.logger = logging.getLogger(__name__)
        self.config_manager = config_manager
        self.audio = audio or AudioManager()
        self.score_accounts = score_accounts
        self.generator = generator or QuestionGenerator()

        # Rounds mapped by channel ID
        self._rounds: Dict[int, RoundController] = {}

        self.logger.info("QuizController initialized")

    def get_round(self, channel_id: int) -> Optional[RoundController]:
        return self._rounds.get(channel_id)

    def has_active_round(self, channel_id: int) -> bool:
        """
        Check if a channel has a round that has not finished.

        Args:
            channel_id: Discord channel identifier

        Returns:
            True if a live round exists for the channel
        """
        controller = self._rounds.get(channel_id)
        return controller is not None and not controller.is_finished

    async def start_round(
        self,
        channel_id: int,
        table: int,
        on_round_end: Optional[Callable[[int, int], Any]] = None,
        on_question: Optional[Callable[[Question, int, int], Any]] = None,
        on_tick: Optional[Callable[[int], Any]] = None,
        on_feedback: Optional[Callable[[bool, Question], Any]] = None,
        player_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Start a round for a channel.

        Args:
            channel_id: Discord channel identifier
            table: Multiplication table to practise
            on_round_end: Called once with (score, total_time) when the round ends
            on_question: Called with (question, index, time_limit) for each question
            on_tick: Called with the remaining seconds each countdown tick
            on_feedback: Called with (correct, question) after each answer
            player_id: Discord user who started the round; the score is saved to their account

        Returns:
            Dictionary with operation results and error information
        """
        controller = None
        try:
            self.cleanup_finished_rounds()

            if self.has_active_round(channel_id):
                raise SessionConflictError(f"Round already running in channel {channel_id}")

            if not is_valid_table(table):
                raise ValueError(f"Table must be between {MIN_TABLE} and {MAX_TABLE}, got {table!r}")

            round_id = f"{channel_id}-{int(time.time() * 1000)}"

            async def round_ended(score: int, total_time: int) -> None:
                self._release(channel_id, controller)
                if on_round_end is not None:
                    await _maybe_await(on_round_end(score, total_time))

            controller = RoundController(
                table,
                round_ended,
                generator=self.generator,
                audio=self.audio,
                score_client=self._score_client_for(player_id),
                player_id=player_id,
                settings=self.config_manager.get_round_settings(),
                on_question=on_question,
                on_tick=on_tick,
                on_feedback=on_feedback,
                round_id=round_id
            )
            self._rounds[channel_id] = controller
            first_question = await controller.start()

            self.logger.info(
                f"Started round {round_id} for channel {channel_id}, table {table}",
                extra={
                    'event_type': 'session_started',
                    'channel_id': channel_id,
                    'round_id': round_id,
                    'table': table,
                    'player_id': player_id,
                    'timestamp': time.time()
                }
            )
            return {
                'success': True,
                'message': f"Round for table {table} started",
                'question': first_question,
                'round_info': controller.status()
            }

        except Exception as e:
            # A round that failed to start must not block the channel.
            if controller is not None:
                await controller.abandon()
                self._release(channel_id, controller)
            return self._handle_session_error(channel_id, e, "start_round")

    def submit_answer(self, channel_id: int, selected: int) -> Optional[bool]:
        """
        Forward an answer to the channel's round.

        Args:
            channel_id: Discord channel identifier
            selected: The option the player picked

        Returns:
            True or False for a correct or wrong answer, None if there was
            no question waiting for an answer
        """
        controller = self._rounds.get(channel_id)
        if controller is None:
            self.logger.debug(
                f"Answer {selected} for channel {channel_id} ignored: no round",
                extra={
                    'event_type': 'answer_no_session',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )
            return None
        return controller.answer(selected)

    async def stop_round(self, channel_id: int) -> Dict[str, Any]:
        """
        Abandon the channel's round without reporting a result.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Dictionary with operation results and the round status at stop time
        """
        controller = self._rounds.get(channel_id)

        if controller is None or controller.is_finished:
            self.logger.warning(
                f"Cannot stop round for channel {channel_id}: no active round",
                extra={
                    'event_type': 'session_stop_no_session',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )
            error = SessionNotFoundError(f"No active round in channel {channel_id}")
            return {
                'success': False,
                'error': str(error),
                'user_message': self._get_user_friendly_error_message(error, "stop_round")
            }

        round_info = controller.status()
        abandoned = await controller.abandon()
        self._release(channel_id, controller)

        self.logger.info(
            f"Stopped round for channel {channel_id}, abandoned: {abandoned}",
            extra={
                'event_type': 'session_stopped',
                'channel_id': channel_id,
                'round_id': controller.round_id,
                'timestamp': time.time()
            }
        )
        return {
            'success': True,
            'message': f"Round stopped at question {round_info['question_index']}",
            'round_info': round_info
        }

    def get_round_status(self, channel_id: int) -> Optional[Dict[str, Any]]:
        controller = self._rounds.get(channel_id)
        if controller is None:
            return None
        return controller.status()

    def cleanup_finished_rounds(self) -> int:
        """
        Drop finished rounds from the registry.

        Returns:
            Number of rounds cleaned up
        """
        finished = [channel_id for channel_id, controller in self._rounds.items()
                    if controller.is_finished]
        for channel_id in finished:
            del self._rounds[channel_id]

        if finished:
            self.logger.info(f"Cleaned up {len(finished)} finished rounds")
        return len(finished)

    def get_all_active_rounds(self) -> Dict[int, Dict[str, Any]]:
        """
        Get information about all live rounds.

        Returns:
            Dictionary mapping channel IDs to round status
        """
        return {
            channel_id: controller.status()
            for channel_id, controller in self._rounds.items()
            if not controller.is_finished
        }

    async def shutdown(self) -> int:
        """Abandon every live round, used when the bot closes."""
        count = 0
        for channel_id in list(self._rounds):
            controller = self._rounds.pop(channel_id)
            if await controller.abandon():
                count += 1
        if count:
            self.logger.info(f"Abandoned {count} rounds on shutdown")
        return count

    def _score_client_for(self, player_id: Optional[int]) -> Optional[ScoreClient]:
        if self.score_accounts is None or player_id is None:
            return None
        return self.score_accounts.for_user(player_id)

    def _release(self, channel_id: int, controller: RoundController) -> None:
        # Only drop the entry if a newer round has not replaced it.
        if self._rounds.get(channel_id) is controller:
            del self._rounds[channel_id]

    def _handle_session_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a session error and build the failure result.

        Args:
            channel_id: Discord channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            Dictionary with error handling results
        """
        if isinstance(error, (SessionConflictError, ValueError)):
            self.logger.warning(f"Rejected {operation} for channel {channel_id}: {error}")
        else:
            self.logger.error(f"Error in {operation} for channel {channel_id}: {error}", exc_info=True)

        return {
            'success': False,
            'error': str(error),
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        """
        Generate user-friendly error messages.

        Args:
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            User-friendly error message
        """
        if isinstance(error, SessionConflictError):
            return "❌ A round is already running in this channel. Please stop it first with `/stop`."

        elif isinstance(error, SessionNotFoundError):
            return "❌ No active round in this channel. Start one with `/play`."

        elif isinstance(error, InvalidRoundStateError):
            return "❌ The round is in an invalid state. Please stop it and start a new one."

        elif isinstance(error, ValueError):
            return f"❌ Unknown table. Choose a table from {MIN_TABLE} to {MAX_TABLE} with `/tables`."

        elif "discord" in str(error).lower():
            return "❌ Discord connection error. Please try again in a moment."

        else:
            return f"❌ An unexpected error occurred during {operation}. Please try again."

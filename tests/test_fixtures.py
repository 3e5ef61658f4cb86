"""
Test fixtures and helpers for Times Table Quiz tests.
"""
import asyncio
import random
from typing import Dict, List, Optional, Tuple
from unittest.mock import Mock, AsyncMock
import discord
import requests

from tablequiz.audio import AudioEvent, AudioManager
from tablequiz.models import Question, RoundSettings
from tablequiz.question_generator import QuestionGenerator
from tablequiz.round_controller import RoundController, RoundPhase


class TestFixtures:
    """Centralized test fixtures for all test modules."""

    @staticmethod
    def create_sample_question() -> Question:
        """The 7 × 3 question with a fixed option order."""
        return Question(multiplier=7, multiplicand=3, correct_answer=21, options=[17, 21, 30, 9])

    @staticmethod
    def create_fast_settings(feedback_delay: float = 0.01, tick_interval: float = 0.01) -> RoundSettings:
        """Round settings that finish in well under a second."""
        return RoundSettings(feedback_delay=feedback_delay, tick_interval=tick_interval)

    @staticmethod
    def create_generator(seed: int = 1234) -> QuestionGenerator:
        return QuestionGenerator(random.Random(seed))

    @staticmethod
    def create_valid_config() -> Dict:
        """Config dictionary in the shape of config.json."""
        return {
            "bot": {"token": "test-token", "command_prefix": "!"},
            "game": {"default_table": 7, "feedback_delay": 0.5, "tick_interval": 0.5},
            "score_service": {"base_url": "https://scores.example.com/api/", "anon_key": "anon", "timeout": 5},
            "logging": {"level": "DEBUG", "log_directory": "./logs/"}
        }


class RecordingPlayer:
    """Audio player that records every cue it is asked to play."""

    def __init__(self):
        self.events: List[Tuple[AudioEvent, float]] = []

    def __call__(self, event: AudioEvent, volume: float) -> None:
        self.events.append((event, volume))

    @property
    def names(self) -> List[AudioEvent]:
        return [event for event, _ in self.events]


class RoundRecorder:
    """Collects round callbacks so tests can assert on them."""

    def __init__(self):
        self.round_end_calls: List[Tuple[int, int]] = []
        self.questions: List[Tuple[Question, int, int]] = []
        self.ticks: List[int] = []
        self.feedback: List[Tuple[bool, Question]] = []

    def on_round_end(self, score: int, total_time: int) -> None:
        self.round_end_calls.append((score, total_time))

    def on_question(self, question: Question, index: int, time_limit: int) -> None:
        self.questions.append((question, index, time_limit))

    def on_tick(self, remaining: int) -> None:
        self.ticks.append(remaining)

    def on_feedback(self, correct: bool, question: Question) -> None:
        self.feedback.append((correct, question))


def create_round(table: int = 7, recorder: Optional[RoundRecorder] = None,
                 player: Optional[RecordingPlayer] = None, score_client=None,
                 settings: Optional[RoundSettings] = None, seed: int = 1234) -> RoundController:
    """Build a round controller wired to recording collaborators."""
    recorder = recorder or RoundRecorder()
    return RoundController(
        table,
        recorder.on_round_end,
        generator=TestFixtures.create_generator(seed),
        audio=AudioManager(player=player or RecordingPlayer()),
        score_client=score_client,
        settings=settings or TestFixtures.create_fast_settings(),
        on_question=recorder.on_question,
        on_tick=recorder.on_tick,
        on_feedback=recorder.on_feedback,
        round_id=f"test-table{table}"
    )


def wrong_option(question: Question) -> int:
    return next(option for option in question.options if option != question.correct_answer)


class AsyncTestHelpers:
    """Helper functions for async testing."""

    @staticmethod
    async def run_with_timeout(coro, timeout: float = 5.0):
        """Run coroutine with timeout."""
        return await asyncio.wait_for(coro, timeout=timeout)

    @staticmethod
    async def wait_for_question(controller: RoundController, index: int, timeout: float = 2.0) -> Question:
        """Wait until the controller is accepting answers for question ``index``."""
        async def poll():
            while not (controller.phase == RoundPhase.ACTIVE and controller.question_index == index):
                if controller.is_finished:
                    raise AssertionError(f"Round finished before question {index}")
                await asyncio.sleep(0.001)
            return controller.current_question
        return await asyncio.wait_for(poll(), timeout=timeout)


class MockHttp:
    """Builders for mocked requests sessions."""

    @staticmethod
    def create_response(status_code: int = 200, payload=None, json_error: bool = False) -> Mock:
        response = Mock(spec=requests.Response)
        response.status_code = status_code
        response.ok = status_code < 400
        if json_error:
            response.json.side_effect = ValueError("No JSON")
        else:
            response.json.return_value = payload if payload is not None else {}
        return response

    @staticmethod
    def create_session(*responses) -> Mock:
        session = Mock(spec=requests.Session)
        session.request.side_effect = list(responses)
        return session


class MockDiscordObjects:
    """Mock Discord objects for testing bot functionality."""

    @staticmethod
    def create_mock_interaction(channel_id: int = 12345, user_id: int = 67890) -> Mock:
        """Create mock Discord interaction."""
        interaction = Mock(spec=discord.Interaction)
        interaction.channel_id = channel_id
        interaction.channel = MockDiscordObjects.create_mock_channel(channel_id)
        interaction.user = Mock()
        interaction.user.id = user_id
        interaction.response = Mock()
        interaction.response.is_done.return_value = False
        interaction.response.send_message = AsyncMock()
        interaction.response.defer = AsyncMock()
        interaction.followup = Mock()
        interaction.followup.send = AsyncMock()
        return interaction

    @staticmethod
    def create_mock_channel(channel_id: int = 12345) -> Mock:
        """Create mock Discord channel."""
        channel = Mock(spec=discord.TextChannel)
        channel.id = channel_id
        channel.send = AsyncMock(return_value=MockDiscordObjects.create_mock_message())
        return channel

    @staticmethod
    def create_mock_message(message_id: int = 11111) -> Mock:
        """Create mock Discord message."""
        message = Mock(spec=discord.Message)
        message.id = message_id
        message.edit = AsyncMock()
        return message

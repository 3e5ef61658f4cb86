"""
Round controller for the Times Table Quiz.
Sequences the ten questions of a round and owns score and timer state.
"""
import asyncio
import inspect
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from .audio import AudioEvent, AudioManager
from .difficulty import get_difficulty_name, is_valid_table
from .models import Question, RoundResult, RoundSettings, ScoreData
from .question_generator import MultiplicandPool, QuestionGenerator
from .quiz_engine import ElapsedCounter, QuizTimer, _maybe_await, time_limit_for_question
from .score_client import ScoreClient

logger = logging.getLogger(__name__)


class RoundPhase(Enum):
    """Enumeration of round states."""
    PREPARING = "preparing"
    ACTIVE = "active"
    FEEDBACK = "feedback"
    FINISHED = "finished"


class RoundControllerError(Exception):
    """Base exception for round controller errors."""
    pass


class InvalidRoundStateError(RoundControllerError):
    """Raised when the round is in the wrong phase for the requested operation."""
    pass


class RoundController:
    """
    Drives one round of ten questions for a fixed table.

    The controller is single use. ``start()`` begins the round; ``answer()``
    is accepted only while a question is active. The round finishes after the
    tenth answer or on the first timeout, whichever comes first, and
    ``on_round_end(score, total_time)`` is invoked exactly once. ``abandon()``
    tears the round down without reporting a result.
    """

    def __init__(
        self,
        table: int,
        on_round_end: Callable[[int, int], Any],
        *,
        generator: Optional[QuestionGenerator] = None,
        audio: Optional[AudioManager] = None,
        score_client: Optional[ScoreClient] = None,
        settings: Optional[RoundSettings] = None,
        on_question: Optional[Callable[[Question, int, int], Any]] = None,
        on_tick: Optional[Callable[[int], Any]] = None,
        on_feedback: Optional[Callable[[bool, Question], Any]] = None,
        round_id: Optional[str] = None,
        player_id: Optional[int] = None,
    ):
        if not is_valid_table(table):
            raise ValueError(f"Table must be an integer between 2 and 10, got {table!r}")

        self.table = table
        self.on_round_end = on_round_end
        self.generator = generator or QuestionGenerator()
        self.audio = audio or AudioManager()
        self.score_client = score_client
        self.settings = settings or RoundSettings()
        self.on_question = on_question
        self.on_tick = on_tick
        self.on_feedback = on_feedback
        self.round_id = round_id or f"table{table}-{id(self):x}"
        self.player_id = player_id

        self._phase = RoundPhase.PREPARING
        self._question_index = 0
        self._score = 0
        self._current_question: Optional[Question] = None
        self._pool: Optional[MultiplicandPool] = None
        self._result: Optional[RoundResult] = None
        self._abandoned = False

        self._countdown = QuizTimer(f"{self.round_id}:q0", self.settings.tick_interval)
        self._clock = ElapsedCounter(f"{self.round_id}:clock", self.settings.tick_interval)
        self._feedback_task: Optional[asyncio.Task] = None
        self._save_task: Optional[asyncio.Task] = None
        self._finished_event = asyncio.Event()
        self._started_at: Optional[float] = None

    async def __aenter__(self) -> "RoundController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._phase != RoundPhase.FINISHED:
            await self.abandon()

    # Read-only state

    @property
    def phase(self) -> RoundPhase:
        return self._phase

    @property
    def is_active(self) -> bool:
        return self._phase in (RoundPhase.ACTIVE, RoundPhase.FEEDBACK)

    @property
    def is_finished(self) -> bool:
        return self._phase == RoundPhase.FINISHED

    @property
    def was_abandoned(self) -> bool:
        return self._abandoned

    @property
    def question_index(self) -> int:
        return self._question_index

    @property
    def score(self) -> int:
        return self._score

    @property
    def current_question(self) -> Optional[Question]:
        return self._current_question

    @property
    def time_limit(self) -> int:
        return time_limit_for_question(max(self._question_index, 1))

    @property
    def remaining_time(self) -> int:
        return self._countdown.remaining_time

    @property
    def elapsed_seconds(self) -> int:
        return self._clock.elapsed

    @property
    def multiplicand_pool(self) -> Optional[MultiplicandPool]:
        return self._pool

    @property
    def result(self) -> Optional[RoundResult]:
        return self._result

    def status(self) -> Dict[str, Any]:
        """Snapshot of the round for status displays."""
        return {
            'round_id': self.round_id,
            'table': self.table,
            'player_id': self.player_id,
            'difficulty': get_difficulty_name(self.table),
            'phase': self._phase.value,
            'question_index': self._question_index,
            'total_questions': self.settings.question_count,
            'score': self._score,
            'time_limit': self.time_limit,
            'remaining_time': self.remaining_time,
            'elapsed_seconds': self.elapsed_seconds,
        }

    # Transitions

    async def start(self) -> Question:
        """
        Begin the round and present question 1.

        Returns:
            The first question

        Raises:
            InvalidRoundStateError: If the round has already been started
        """
        if self._phase != RoundPhase.PREPARING:
            raise InvalidRoundStateError(f"Round {self.round_id} cannot start from phase {self._phase.value}")

        self._pool = self.generator.new_pool()
        self._score = 0
        self._started_at = time.time()

        logger.info(
            f"Round {self.round_id} started for table {self.table}",
            extra={
                'event_type': 'round_started',
                'round_id': self.round_id,
                'table': self.table,
                'pool': self._pool.values,
                'timestamp': self._started_at
            }
        )

        self.audio.play(AudioEvent.ROUND_START)
        self.audio.start_background_music()
        self._clock.start()
        await self._present_question(1)
        return self._current_question

    def answer(self, selected: int) -> Optional[bool]:
        """
        Submit an answer for the current question.

        Args:
            selected: The option the player picked

        Returns:
            True or False for a correct or wrong answer, None if the answer was ignored
        """
        if self._phase != RoundPhase.ACTIVE or self._current_question is None:
            logger.debug(
                f"Ignoring answer {selected} for round {self.round_id} in phase {self._phase.value}",
                extra={
                    'event_type': 'answer_ignored',
                    'round_id': self.round_id,
                    'phase': self._phase.value,
                    'timestamp': time.time()
                }
            )
            return None

        self._phase = RoundPhase.FEEDBACK
        self._countdown.cancel()

        question = self._current_question
        correct = question.is_correct(selected)
        if correct:
            self._score += 1
            self.audio.play(AudioEvent.CORRECT_ANSWER)
        else:
            self.audio.play(AudioEvent.WRONG_ANSWER)

        logger.info(
            f"Round {self.round_id} question {self._question_index}: "
            f"{question.multiplier}x{question.multiplicand} answered {selected} "
            f"({'correct' if correct else 'wrong'}), score {self._score}",
            extra={
                'event_type': 'answer_submitted',
                'round_id': self.round_id,
                'question_index': self._question_index,
                'correct': correct,
                'score': self._score,
                'timestamp': time.time()
            }
        )

        self._feedback_task = asyncio.create_task(self._run_feedback(correct, question))
        return correct

    async def abandon(self) -> bool:
        """
        Tear the round down without reporting a result.

        Returns:
            True if the round was live and is now abandoned
        """
        if self._phase == RoundPhase.FINISHED:
            return False

        self._phase = RoundPhase.FINISHED
        self._abandoned = True
        self._cancel_tasks()
        self.audio.stop_background_music()
        self._finished_event.set()

        logger.info(
            f"Round {self.round_id} abandoned at question {self._question_index} with score {self._score}",
            extra={
                'event_type': 'round_abandoned',
                'round_id': self.round_id,
                'question_index': self._question_index,
                'score': self._score,
                'timestamp': time.time()
            }
        )
        return True

    async def wait_finished(self, timeout: Optional[float] = None) -> Optional[RoundResult]:
        """Wait until the round finishes or is abandoned."""
        if timeout is None:
            await self._finished_event.wait()
        else:
            await asyncio.wait_for(self._finished_event.wait(), timeout)
        return self._result

    async def wait_saved(self) -> Optional[bool]:
        """Wait for the background score save, if one was scheduled."""
        if self._save_task is None:
            return None
        return await self._save_task

    # Internals

    async def _present_question(self, index: int) -> None:
        self._question_index = index
        multiplicand = self._pool.draw()
        self._current_question = self.generator.generate(self.table, multiplicand)
        time_limit = time_limit_for_question(index)
        self._phase = RoundPhase.ACTIVE

        logger.debug(
            f"Round {self.round_id} presenting question {index}: {self._current_question.text} "
            f"options {self._current_question.options}, {time_limit}s",
            extra={
                'event_type': 'question_presented',
                'round_id': self.round_id,
                'question_index': index,
                'time_limit': time_limit,
                'timestamp': time.time()
            }
        )

        self._countdown = QuizTimer(f"{self.round_id}:q{index}", self.settings.tick_interval)
        self._countdown.start(time_limit, self._handle_tick, self._handle_timeout)
        await self._notify(self.on_question, self._current_question, index, time_limit)

    def _handle_tick(self, remaining: int) -> Optional[Awaitable[None]]:
        # Runs inline on the countdown; a slow observer gets its own task.
        if self._phase != RoundPhase.ACTIVE:
            return None
        return self._call_observer(self.on_tick, remaining)

    async def _handle_timeout(self) -> None:
        if self._phase != RoundPhase.ACTIVE:
            return
        logger.info(
            f"Round {self.round_id} timed out on question {self._question_index} with score {self._score}",
            extra={
                'event_type': 'round_timeout',
                'round_id': self.round_id,
                'question_index': self._question_index,
                'score': self._score,
                'timestamp': time.time()
            }
        )
        await self._finish("timeout")

    async def _run_feedback(self, correct: bool, question: Question) -> None:
        await self._notify(self.on_feedback, correct, question)
        await asyncio.sleep(self.settings.feedback_delay)

        if self._phase != RoundPhase.FEEDBACK:
            return

        if self._question_index >= self.settings.question_count:
            await self._finish("completed")
        else:
            await self._present_question(self._question_index + 1)

    async def _finish(self, reason: str) -> None:
        # First transition wins: check and set before any await.
        if self._phase == RoundPhase.FINISHED:
            logger.warning(
                f"Round {self.round_id} already finished, ignoring {reason}",
                extra={
                    'event_type': 'round_finish_race',
                    'round_id': self.round_id,
                    'reason': reason,
                    'timestamp': time.time()
                }
            )
            return
        self._phase = RoundPhase.FINISHED

        self._cancel_tasks()
        self.audio.stop_background_music()

        total_time = self._clock.elapsed
        self._result = RoundResult(
            table=self.table,
            score=self._score,
            total_time=total_time,
            questions_answered=self._question_index if reason == "completed" else self._question_index - 1,
            reason=reason,
        )

        if self._result.is_perfect:
            self.audio.play(AudioEvent.PERFECT_SCORE)
        else:
            self.audio.play(AudioEvent.ROUND_OVER)

        logger.info(
            f"Round {self.round_id} finished ({reason}): score {self._score}, time {total_time}s",
            extra={
                'event_type': 'round_finished',
                'round_id': self.round_id,
                'reason': reason,
                'score': self._score,
                'total_time': total_time,
                'timestamp': time.time()
            }
        )

        if self.score_client is not None:
            self._save_task = asyncio.create_task(self._save_score(self._result))

        self._finished_event.set()

        try:
            await _maybe_await(self.on_round_end(self._score, total_time))
        except Exception as e:
            logger.error(f"Round end callback failed for round {self.round_id}: {e}", exc_info=True)

    async def _save_score(self, result: RoundResult) -> bool:
        payload = ScoreData(score=result.score, table=result.table, total_time=result.total_time)
        try:
            saved = await asyncio.to_thread(self.score_client.save_score, payload)
        except Exception as e:
            logger.error(f"Error saving score for round {self.round_id}: {e}")
            saved = False
        result.saved = bool(saved)
        if not result.saved:
            logger.error(f"Failed to save score for round {self.round_id}")
        return result.saved

    def _cancel_tasks(self) -> None:
        self._countdown.cancel()
        self._clock.stop()

        task = self._feedback_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _notify(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        pending = self._call_observer(callback, *args)
        if pending is not None:
            await pending

    def _call_observer(self, callback: Optional[Callable[..., Any]], *args: Any) -> Optional[Awaitable[None]]:
        if callback is None:
            return None
        try:
            result = callback(*args)
        except Exception as e:
            self._log_observer_error(callback, e)
            return None
        if inspect.isawaitable(result):
            return self._await_observer(callback, result)
        return None

    async def _await_observer(self, callback: Callable[..., Any], pending: Awaitable[Any]) -> None:
        try:
            await pending
        except Exception as e:
            self._log_observer_error(callback, e)

    def _log_observer_error(self, callback: Callable[..., Any], error: Exception) -> None:
        logger.error(f"Round {self.round_id} observer {getattr(callback, '__name__', callback)} failed: {error}")

"""
Quiz engine timing for the Times Table Quiz.
Handles the per-question countdown, the round clock and the time budget policy.
"""
import asyncio
import inspect
import logging
import time
from typing import Optional, Callable, Any


logger = logging.getLogger(__name__)


def time_limit_for_question(question_index: int) -> int:
    """
    Get the countdown budget for a question.

    Args:
        question_index: 1-based question number

    Returns:
        Seconds allowed for the question
    """
    if question_index <= 3:
        return 25
    if question_index <= 6:
        return 20
    if question_index <= 8:
        return 18
    return 15


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class TimerLifecycleLogger:
    """Structured logging for countdown and round clock events.

    Every record carries ``event_type`` and ``timer_id`` extras so log
    handlers can follow one question's countdown from start to expiry.
    """

    # Ticks at or below this are always logged.
    FINAL_SECONDS = 5

    @staticmethod
    def _emit(level: int, event_type: str, timer_id: str, message: str, **fields: Any) -> None:
        fields.update(event_type=event_type, timer_id=timer_id, timestamp=time.time())
        logger.log(level, f"Timer {timer_id}: {message}", extra=fields)

    @staticmethod
    def log_timer_start(timer_id: str, duration: int) -> None:
        TimerLifecycleLogger._emit(
            logging.INFO, 'timer_countdown_start', timer_id,
            f"countdown started with {duration} ticks", duration=duration
        )

    @staticmethod
    def log_timer_update(timer_id: str, remaining_time: int, total_duration: int) -> None:
        """Log a tick at the start, halfway point and final seconds of a countdown."""
        halfway = total_duration // 2
        if remaining_time not in (total_duration, halfway) and remaining_time > TimerLifecycleLogger.FINAL_SECONDS:
            return
        used = total_duration - remaining_time
        TimerLifecycleLogger._emit(
            logging.DEBUG, 'timer_tick', timer_id,
            f"{remaining_time}/{total_duration} remaining",
            remaining_time=remaining_time, total_duration=total_duration, ticks_used=used
        )

    @staticmethod
    def log_timer_completion(timer_id: str, completion_type: str, total_duration: int) -> None:
        """Log how a countdown ended: natural_expiry, cancelled or asyncio_cancelled."""
        TimerLifecycleLogger._emit(
            logging.INFO, 'timer_completed', timer_id,
            f"countdown ended ({completion_type}) after a budget of {total_duration}",
            completion_type=completion_type, total_duration=total_duration
        )

    @staticmethod
    def log_timer_state_transition(timer_id: str, from_state: str, to_state: str, reason: str = None) -> None:
        suffix = f" ({reason})" if reason else ""
        TimerLifecycleLogger._emit(
            logging.DEBUG, 'timer_state_transition', timer_id,
            f"{from_state} -> {to_state}{suffix}",
            from_state=from_state, to_state=to_state, reason=reason
        )

    @staticmethod
    def log_timer_error(timer_id: str, error_type: str, error_message: str, operation: str) -> None:
        TimerLifecycleLogger._emit(
            logging.ERROR, 'timer_error', timer_id,
            f"{operation} failed with {error_type}: {error_message}",
            error_type=error_type, error_message=error_message, operation=operation
        )


class QuizTimer:
    """Countdown timer for a single question, run as an asyncio task.

    Ticks are scheduled against the start time, so the countdown expires
    ``duration * tick_interval`` seconds after it starts however long the
    update callback takes. An awaitable returned by the update callback runs
    as its own task; a tick that arrives while the previous update is still
    running is dropped.
    """

    def __init__(self, timer_id: str = None, tick_interval: float = 1.0):
        self._task: Optional[asyncio.Task] = None
        self._update_task: Optional[asyncio.Task] = None
        self._remaining_time = 0
        self._total_duration = 0
        self._is_cancelled = False
        self._timer_id = timer_id
        self.tick_interval = tick_interval

    def start(
        self,
        duration: int,
        update_callback: Optional[Callable[[int], Any]],
        completion_callback: Callable[[], Any]
    ) -> asyncio.Task:
        """
        Start the countdown as a background task.

        Args:
            duration: Number of ticks before expiry
            update_callback: Called each tick with remaining time
            completion_callback: Called once when the countdown reaches zero

        Returns:
            The countdown task
        """
        if self.is_running:
            raise RuntimeError(f"Timer {self._timer_id} is already running")
        self._remaining_time = duration
        self._total_duration = duration
        self._is_cancelled = False
        self._task = asyncio.create_task(
            self.start_countdown(duration, update_callback, completion_callback)
        )
        return self._task

    async def start_countdown(
        self,
        duration: int,
        update_callback: Optional[Callable[[int], Any]],
        completion_callback: Callable[[], Any]
    ) -> None:
        """
        Run a countdown with callbacks for updates and completion.

        Args:
            duration: Number of ticks before expiry
            update_callback: Called each tick with remaining time
            completion_callback: Called when the timer expires naturally
        """
        loop = asyncio.get_running_loop()
        started_at = loop.time()
        self._remaining_time = duration
        self._total_duration = duration

        TimerLifecycleLogger.log_timer_start(self._timer_id, duration)

        try:
            while self._remaining_time > 0 and not self._is_cancelled:
                TimerLifecycleLogger.log_timer_update(self._timer_id, self._remaining_time, duration)
                self._dispatch_update(update_callback, self._remaining_time)

                next_tick_at = started_at + (duration - self._remaining_time + 1) * self.tick_interval
                await asyncio.sleep(max(0.0, next_tick_at - loop.time()))
                self._remaining_time -= 1

            if self._is_cancelled:
                TimerLifecycleLogger.log_timer_completion(self._timer_id, "cancelled", duration)
            else:
                TimerLifecycleLogger.log_timer_completion(self._timer_id, "natural_expiry", duration)
                self._dispatch_update(update_callback, 0)
                await _maybe_await(completion_callback())

        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(self._timer_id, "asyncio_cancelled", duration)
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._timer_id,
                "countdown_execution_error",
                str(e),
                "start_countdown"
            )
            raise

    def _dispatch_update(self, update_callback: Optional[Callable[[int], Any]], remaining: int) -> None:
        if update_callback is None:
            return
        result = update_callback(remaining)
        if not inspect.isawaitable(result):
            return

        if self._update_task is not None and not self._update_task.done():
            if inspect.iscoroutine(result):
                result.close()
            TimerLifecycleLogger.log_timer_state_transition(
                self._timer_id, "running", "running", f"update for {remaining} dropped, previous update pending"
            )
            return

        self._update_task = asyncio.ensure_future(result)
        self._update_task.add_done_callback(self._on_update_done)

    def _on_update_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        TimerLifecycleLogger.log_timer_error(
            self._timer_id, "update_callback_error", str(task.exception()), "update_callback"
        )

    def cancel(self) -> bool:
        """
        Cancel the countdown and any update still in flight.

        Returns:
            True if a running task was cancelled, False otherwise
        """
        self._is_cancelled = True
        update_task = self._update_task
        if update_task is not None and not update_task.done() and update_task is not asyncio.current_task():
            update_task.cancel()

        task = self._task
        if task is None or task.done():
            TimerLifecycleLogger.log_timer_state_transition(
                self._timer_id, "idle", "cancelled", "no active task"
            )
            return False

        # A completion callback may cancel the timer that is running it.
        if task is asyncio.current_task():
            TimerLifecycleLogger.log_timer_state_transition(
                self._timer_id, "running", "cancelled", "cancelled from own task"
            )
            return False

        task.cancel()
        TimerLifecycleLogger.log_timer_state_transition(
            self._timer_id, "running", "cancelled", "task cancelled"
        )
        return True

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._is_cancelled

    @property
    def is_cancelled(self) -> bool:
        """Check if timer is cancelled."""
        return self._is_cancelled

    @property
    def remaining_time(self) -> int:
        """Get remaining ticks."""
        return self._remaining_time


class ElapsedCounter:
    """Counts whole ticks while a round is live, for reporting only."""

    def __init__(self, timer_id: str = None, tick_interval: float = 1.0):
        self._timer_id = timer_id
        self.tick_interval = tick_interval
        self._elapsed = 0
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        if self._task and not self._task.done():
            raise RuntimeError(f"Elapsed counter {self._timer_id} is already running")
        self._task = asyncio.create_task(self._run())
        TimerLifecycleLogger.log_timer_state_transition(self._timer_id, "idle", "counting")
        return self._task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            self._elapsed += 1

    def stop(self) -> bool:
        task = self._task
        if task is None or task.done():
            return False
        task.cancel()
        TimerLifecycleLogger.log_timer_state_transition(
            self._timer_id, "counting", "stopped", f"elapsed {self._elapsed}"
        )
        return True

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def elapsed(self) -> int:
        return self._elapsed

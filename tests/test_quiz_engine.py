"""
Unit tests for countdown timing and the time budget policy.
"""
import unittest
import asyncio
import logging
from unittest.mock import patch

from tablequiz.quiz_engine import QuizTimer, ElapsedCounter, time_limit_for_question
from tests.test_fixtures import AsyncTestHelpers


class TestTimeBudget(unittest.TestCase):
    """Test cases for per-question time limits."""

    def test_budget_for_each_question(self):
        budgets = [time_limit_for_question(index) for index in range(1, 11)]
        self.assertEqual(budgets, [25, 25, 25, 20, 20, 20, 18, 18, 15, 15])

    def test_budget_never_increases(self):
        budgets = [time_limit_for_question(index) for index in range(1, 11)]
        self.assertEqual(budgets, sorted(budgets, reverse=True))


class TestQuizTimer(unittest.IsolatedAsyncioTestCase):
    """Test cases for the question countdown."""

    def setUp(self):
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        logging.disable(logging.NOTSET)

    async def test_timer_countdown_completion(self):
        """Updates count down to zero before the completion callback fires."""
        timer = QuizTimer("test", tick_interval=0.001)
        updates = []
        completed = asyncio.Event()

        async def completion_callback():
            completed.set()

        task = timer.start(3, updates.append, completion_callback)
        await AsyncTestHelpers.run_with_timeout(task)

        self.assertEqual(updates, [3, 2, 1, 0])
        self.assertTrue(completed.is_set())
        self.assertFalse(timer.is_running)
        self.assertEqual(timer.remaining_time, 0)

    async def test_sync_callbacks_are_accepted(self):
        timer = QuizTimer("sync", tick_interval=0.001)
        completions = []

        await AsyncTestHelpers.run_with_timeout(timer.start(1, None, lambda: completions.append(True)))

        self.assertEqual(completions, [True])

    async def test_timer_cancel(self):
        """A cancelled timer never calls its completion callback."""
        timer = QuizTimer("cancel", tick_interval=0.05)
        completions = []

        task = timer.start(10, None, lambda: completions.append(True))
        await asyncio.sleep(0.01)

        self.assertTrue(timer.cancel())
        self.assertTrue(timer.is_cancelled)
        self.assertFalse(timer.is_running)
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertEqual(completions, [])

    async def test_cancel_without_task(self):
        timer = QuizTimer("idle")
        self.assertFalse(timer.cancel())

    async def test_cancel_from_completion_callback(self):
        """The completion callback may cancel its own timer without error."""
        timer = QuizTimer("self-cancel", tick_interval=0.001)
        results = []

        def completion_callback():
            results.append(timer.cancel())

        await AsyncTestHelpers.run_with_timeout(timer.start(1, None, completion_callback))

        self.assertEqual(results, [False])
        self.assertTrue(timer.is_cancelled)

    async def test_start_while_running_raises(self):
        timer = QuizTimer("busy", tick_interval=0.05)
        timer.start(5, None, lambda: None)
        try:
            with self.assertRaises(RuntimeError):
                timer.start(5, None, lambda: None)
        finally:
            timer.cancel()

    async def test_update_callback_error_propagates(self):
        timer = QuizTimer("broken", tick_interval=0.001)

        def update_callback(remaining):
            raise ValueError("boom")

        with self.assertRaises(ValueError):
            await timer.start(2, update_callback, lambda: None)

    async def test_slow_update_does_not_stretch_countdown(self):
        """Expiry lands on the budget even when each update outlasts a tick."""
        timer = QuizTimer("slow", tick_interval=0.01)
        updates = []

        async def slow_update(remaining):
            updates.append(remaining)
            await asyncio.sleep(0.03)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await AsyncTestHelpers.run_with_timeout(timer.start(10, slow_update, lambda: None))
        elapsed = loop.time() - started
        timer.cancel()

        # 10 ticks of 0.01s; awaiting each update would take 0.4s
        self.assertLess(elapsed, 0.2)
        self.assertEqual(updates[0], 10)
        self.assertLess(len(updates), 10)

    async def test_cancel_drops_pending_update(self):
        timer = QuizTimer("pending", tick_interval=0.01)
        finished = []

        async def slow_update(remaining):
            await asyncio.sleep(1)
            finished.append(remaining)

        task = timer.start(5, slow_update, lambda: None)
        await asyncio.sleep(0.005)
        timer.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.01)

        self.assertEqual(finished, [])
        self.assertTrue(timer._update_task.cancelled())

    @patch('tablequiz.quiz_engine.TimerLifecycleLogger.log_timer_error')
    async def test_async_update_error_is_logged_not_raised(self, mock_log_error):
        timer = QuizTimer("failing-update", tick_interval=0.01)
        completions = []

        async def failing_update(remaining):
            raise ValueError("edit failed")

        await AsyncTestHelpers.run_with_timeout(
            timer.start(2, failing_update, lambda: completions.append(True))
        )

        self.assertEqual(completions, [True])
        mock_log_error.assert_any_call("failing-update", "update_callback_error", "edit failed", "update_callback")


class TestElapsedCounter(unittest.IsolatedAsyncioTestCase):
    """Test cases for the round clock."""

    def setUp(self):
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        logging.disable(logging.NOTSET)

    async def test_counts_ticks_until_stopped(self):
        counter = ElapsedCounter("clock", tick_interval=0.005)
        counter.start()
        await asyncio.sleep(0.05)

        self.assertTrue(counter.stop())
        stopped_at = counter.elapsed
        await asyncio.sleep(0.03)

        self.assertGreater(stopped_at, 0)
        self.assertEqual(counter.elapsed, stopped_at)
        self.assertFalse(counter.is_running)

    async def test_stop_when_idle(self):
        counter = ElapsedCounter("idle")
        self.assertFalse(counter.stop())
        self.assertEqual(counter.elapsed, 0)

    async def test_double_start_raises(self):
        counter = ElapsedCounter("clock", tick_interval=0.01)
        counter.start()
        try:
            with self.assertRaises(RuntimeError):
                counter.start()
        finally:
            counter.stop()


class TestTimerLifecycleLogging(unittest.IsolatedAsyncioTestCase):
    """Test cases for structured timer lifecycle events."""

    @patch('tablequiz.quiz_engine.TimerLifecycleLogger.log_timer_completion')
    async def test_natural_expiry_logged(self, mock_log_completion):
        timer = QuizTimer("expiry", tick_interval=0.001)
        await AsyncTestHelpers.run_with_timeout(timer.start(2, None, lambda: None))

        mock_log_completion.assert_called_once_with("expiry", "natural_expiry", 2)

    @patch('tablequiz.quiz_engine.TimerLifecycleLogger.log_timer_completion')
    async def test_cancellation_logged(self, mock_log_completion):
        timer = QuizTimer("cancelled", tick_interval=0.05)
        task = timer.start(5, None, lambda: None)
        await asyncio.sleep(0.01)
        timer.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        mock_log_completion.assert_called_once_with("cancelled", "asyncio_cancelled", 5)

    async def test_start_event_carries_structured_fields(self):
        with self.assertLogs('tablequiz.quiz_engine', level='INFO') as captured:
            timer = QuizTimer("structured", tick_interval=0.001)
            await AsyncTestHelpers.run_with_timeout(timer.start(1, None, lambda: None))

        start_records = [record for record in captured.records
                         if getattr(record, 'event_type', None) == 'timer_countdown_start']
        self.assertEqual(len(start_records), 1)
        self.assertEqual(start_records[0].timer_id, "structured")
        self.assertEqual(start_records[0].duration, 1)


if __name__ == '__main__':
    unittest.main()

"""
Unit tests for classroom/utils/retry.py and classroom/utils/epoch.py

asyncio.sleep is patched so the backoff schedule is observed, not waited.

Run with: python -m pytest classroom/tests/test_retry.py -v
"""
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from classroom.errors import ImageGenerationFailure
from classroom.utils.epoch import EpochGuard
from classroom.utils.retry import linear_backoff, poll_until_ready, retry_async


def flaky(failures: int, result="ok", error=ImageGenerationFailure):
    """Coroutine factory that fails ``failures`` times, then succeeds."""
    calls = {'count': 0}

    async def operation():
        calls['count'] += 1
        if calls['count'] <= failures:
            raise error(f"attempt {calls['count']} failed")
        return result

    return operation, calls


@patch('classroom.utils.retry.asyncio.sleep', new_callable=AsyncMock)
class TestRetryAsync(unittest.IsolatedAsyncioTestCase):

    async def test_first_success_does_not_sleep(self, mock_sleep):
        operation, calls = flaky(0)
        self.assertEqual(await retry_async(operation), "ok")
        self.assertEqual(calls['count'], 1)
        mock_sleep.assert_not_awaited()

    async def test_linear_backoff_between_attempts(self, mock_sleep):
        operation, calls = flaky(2)
        result = await retry_async(operation, attempts=3, backoff=linear_backoff(1.0))

        self.assertEqual(result, "ok")
        self.assertEqual(calls['count'], 3)
        self.assertEqual([c.args[0] for c in mock_sleep.await_args_list], [1.0, 2.0])

    async def test_raises_last_error_when_exhausted(self, mock_sleep):
        operation, calls = flaky(5)
        with self.assertRaises(ImageGenerationFailure) as ctx:
            await retry_async(operation, attempts=3)

        self.assertIn("attempt 3", str(ctx.exception))
        self.assertEqual(calls['count'], 3)
        self.assertEqual(mock_sleep.await_count, 2)

    async def test_unlisted_errors_are_not_retried(self, mock_sleep):
        operation, calls = flaky(1, error=KeyError)
        with self.assertRaises(KeyError):
            await retry_async(operation, attempts=3, retry_on=(ImageGenerationFailure,))
        self.assertEqual(calls['count'], 1)

    async def test_attempts_must_be_positive(self, mock_sleep):
        operation, _ = flaky(0)
        with self.assertRaises(ValueError):
            await retry_async(operation, attempts=0)


@patch('classroom.utils.retry.asyncio.sleep', new_callable=AsyncMock)
class TestPollUntilReady(unittest.IsolatedAsyncioTestCase):

    async def test_polls_until_done(self, mock_sleep):
        states = iter([SimpleNamespace(done=False), SimpleNamespace(done=True, value=42)])

        async def refresh(job):
            return next(states)

        job = await poll_until_ready(
            refresh, SimpleNamespace(done=False), lambda j: j.done, interval=5.0
        )
        self.assertEqual(job.value, 42)
        self.assertEqual([c.args[0] for c in mock_sleep.await_args_list], [5.0, 5.0])

    async def test_ready_job_is_returned_immediately(self, mock_sleep):
        refresh = AsyncMock()
        job = SimpleNamespace(done=True)
        self.assertIs(await poll_until_ready(refresh, job, lambda j: j.done), job)
        refresh.assert_not_awaited()

    async def test_gives_up_after_max_polls(self, mock_sleep):
        async def refresh(job):
            return job

        with self.assertRaises(TimeoutError):
            await poll_until_ready(
                refresh, SimpleNamespace(done=False), lambda j: j.done, max_polls=3
            )
        self.assertEqual(mock_sleep.await_count, 3)


class TestEpochGuard(unittest.TestCase):

    def test_only_latest_epoch_is_current(self):
        guard = EpochGuard()
        first = guard.advance()
        second = guard.advance()

        self.assertFalse(guard.is_current(first))
        self.assertTrue(guard.is_current(second))
        self.assertEqual(guard.current, second)


if __name__ == '__main__':
    unittest.main()

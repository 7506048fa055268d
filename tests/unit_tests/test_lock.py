"""
Unit tests for the deploy lock.
"""

import threading
import time
import unittest
from unittest.mock import MagicMock

from rolling_deploy.orchestrator.events import EventEmitter, ProgressEvent
from rolling_deploy.orchestrator.lock import DistributedLock
from rolling_deploy.utils.errors import DeploymentError, ErrorCategory, LockTimeoutError
from tests.unit_tests.fakes import FakeLockBackend, ThreadingLockBackend


class TestDistributedLock(unittest.TestCase):
    """Test DistributedLock acquisition and release."""

    def setUp(self):
        self.callback = MagicMock()
        self.emitter = EventEmitter(self.callback)

    def events(self):
        return [c.args[0] for c in self.callback.call_args_list]

    def test_runs_body_while_holding_lock(self):
        """Test the body runs between acquire and release."""
        backend = FakeLockBackend()
        lock = DistributedLock(backend, emitter=self.emitter)

        def body(value):
            self.assertEqual(backend.released, [])
            return value * 2

        result = lock.with_lock("deploy", 600, body, 21)

        self.assertEqual(result, 42)
        self.assertEqual(backend.acquired, [("deploy", 600)])
        self.assertEqual(backend.released, ["token-deploy"])
        self.assertEqual(
            self.events(),
            [ProgressEvent.LOCK_WAITING, ProgressEvent.LOCK_ACQUIRED, ProgressEvent.LOCK_RELEASED],
        )

    def test_releases_lock_when_body_raises(self):
        """Test the lock is released on failure and the error propagates."""
        backend = FakeLockBackend()
        lock = DistributedLock(backend, emitter=self.emitter)

        def body():
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            lock.with_lock("deploy", 600, body)

        self.assertEqual(backend.released, ["token-deploy"])

    def test_timeout_never_runs_body(self):
        """Test a lock timeout raises before the body runs."""
        backend = FakeLockBackend(available=False)
        lock = DistributedLock(backend, emitter=self.emitter)
        body = MagicMock()

        with self.assertRaises(LockTimeoutError) as ctx:
            lock.with_lock("deploy", 600, body)

        body.assert_not_called()
        self.assertEqual(backend.released, [])
        self.assertIn("could not get deploy lock 'deploy' within 600 seconds", str(ctx.exception))
        self.assertEqual(self.events(), [ProgressEvent.LOCK_WAITING, ProgressEvent.LOCK_TIMEOUT])

    def test_without_backend_runs_unlocked(self):
        """Test no backend means the body runs without lock events."""
        lock = DistributedLock(None, emitter=self.emitter)

        with self.assertLogs("rolling_deploy.orchestrator.lock", level="WARNING"):
            result = lock.with_lock("deploy", 600, lambda: "ran")

        self.assertEqual(result, "ran")
        self.assertFalse(lock.enabled)
        self.callback.assert_not_called()

    def test_hold_context_manager(self):
        """Test hold can be used directly as a context manager."""
        backend = FakeLockBackend()
        lock = DistributedLock(backend)

        with lock.hold("other", max_wait=5):
            self.assertEqual(backend.acquired, [("other", 5)])

        self.assertEqual(backend.released, ["token-other"])

    def test_release_error_does_not_mask_body_error(self):
        """Test the body's exception surfaces when releasing also fails."""
        backend = FakeLockBackend(release_error=DeploymentError(
            "Could not release deploy lock", category=ErrorCategory.LOCK
        ))
        lock = DistributedLock(backend, emitter=self.emitter)

        def body():
            raise RuntimeError("deploy failed")

        with self.assertLogs("rolling_deploy.orchestrator.lock", level="ERROR") as logs:
            with self.assertRaises(RuntimeError):
                lock.with_lock("deploy", 600, body)

        self.assertIn("Could not release deploy lock", logs.output[0])
        self.assertEqual(backend.released, ["token-deploy"])
        self.assertNotIn(ProgressEvent.LOCK_RELEASED, self.events())

    def test_release_error_surfaces_after_successful_body(self):
        """Test a failed release is raised when the body succeeded."""
        backend = FakeLockBackend(release_error=DeploymentError(
            "Could not release deploy lock", category=ErrorCategory.LOCK
        ))
        lock = DistributedLock(backend, emitter=self.emitter)

        with self.assertRaises(DeploymentError) as ctx:
            lock.with_lock("deploy", 600, lambda: "done")

        self.assertEqual(ctx.exception.category, ErrorCategory.LOCK)


class TestDistributedLockConcurrency(unittest.TestCase):
    """Test DistributedLock with invocations running in threads."""

    def test_concurrent_holders_never_overlap(self):
        """Test two threads holding the same name run one after another."""
        lock = DistributedLock(ThreadingLockBackend())
        timeline = []
        start = threading.Barrier(2)

        def body(worker):
            timeline.append((worker, "enter"))
            time.sleep(0.05)
            timeline.append((worker, "exit"))

        def run(worker):
            start.wait()
            lock.with_lock("deploy", 5, body, worker)

        threads = [threading.Thread(target=run, args=(worker,)) for worker in ("first", "second")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(timeline), 4)
        self.assertEqual([step for _, step in timeline], ["enter", "exit", "enter", "exit"])
        self.assertEqual(timeline[0][0], timeline[1][0])
        self.assertEqual(timeline[2][0], timeline[3][0])

    def test_waiter_times_out_while_lock_is_held(self):
        """Test a second invocation gives up after max_wait without running."""
        backend = ThreadingLockBackend()
        lock = DistributedLock(backend)
        token = backend.acquire("deploy", 1)
        body = MagicMock()

        try:
            started = time.monotonic()
            with self.assertRaises(LockTimeoutError):
                lock.with_lock("deploy", 0.1, body)
            waited = time.monotonic() - started
        finally:
            backend.release(token)

        body.assert_not_called()
        self.assertEqual(backend.acquired[-1], ("deploy", 0.1))
        self.assertGreaterEqual(waited, 0.09)


if __name__ == "__main__":
    unittest.main()

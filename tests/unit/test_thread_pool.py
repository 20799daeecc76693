"""
Unit tests for the thread pool.
"""

import threading

import pytest

from httptestserver.core.thread_pool import ThreadPool


@pytest.fixture
def pool():
    p = ThreadPool(min_workers=1, max_workers=8, queue_size=16)
    p.start()
    yield p
    p.shutdown(wait=True, timeout=5)


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_runs_tasks(self, pool):
        done = threading.Event()

        assert pool.submit(done.set) is True

        assert done.wait(5)

    def test_args_and_kwargs(self, pool):
        results = []
        done = threading.Event()

        def task(a, b=None):
            results.append((a, b))
            done.set()

        pool.submit(task, args=(1,), kwargs={"b": 2})

        assert done.wait(5)
        assert results == [(1, 2)]

    def test_grows_when_workers_are_blocked(self, pool):
        """Blocked tasks don't starve later ones: the pool adds workers."""
        release = threading.Event()
        started = threading.Semaphore(0)

        def blocker():
            started.release()
            release.wait(10)

        try:
            for _ in range(4):
                pool.submit(blocker)
            for _ in range(4):
                assert started.acquire(timeout=5)

            done = threading.Event()
            pool.submit(done.set)
            assert done.wait(5)
        finally:
            release.set()

    def test_failing_task_does_not_kill_worker(self, pool):
        def boom():
            raise RuntimeError("boom")

        pool.submit(boom)
        done = threading.Event()
        pool.submit(done.set)

        assert done.wait(5)

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool().submit(lambda: None)

    def test_submit_after_shutdown(self):
        p = ThreadPool(min_workers=1, max_workers=1)
        p.start()
        p.shutdown()

        with pytest.raises(RuntimeError):
            p.submit(lambda: None)

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            ThreadPool(min_workers=0)
        with pytest.raises(ValueError):
            ThreadPool(min_workers=4, max_workers=2)

    def test_shutdown_runs_queued_tasks(self):
        p = ThreadPool(min_workers=1, max_workers=1)
        p.start()
        ran = []

        for i in range(5):
            p.submit(ran.append, args=(i,))
        p.shutdown(wait=True, timeout=5)

        assert sorted(ran) == [0, 1, 2, 3, 4]

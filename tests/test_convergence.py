"""
Tests for ConvergenceScheduler.
"""
import threading

from fleetctl.core import ConvergenceScheduler


def test_task_runs_when_timer_fires(scheduler, timers):
    calls = []
    scheduler.schedule("a1", 3.0, lambda: calls.append("a1"))

    assert scheduler.has_pending("a1")
    assert timers.timers[0].daemon is True

    timers.fire_all()

    assert calls == ["a1"]
    assert not scheduler.has_pending("a1")


def test_newer_task_supersedes_pending_one(scheduler, timers):
    calls = []
    scheduler.schedule("a1", 3.0, lambda: calls.append("first"))
    scheduler.schedule("a1", 1.0, lambda: calls.append("second"))

    assert timers.timers[0].cancelled
    assert scheduler.pending_count() == 1

    timers.fire_all()
    assert calls == ["second"]


def test_assets_are_independent(scheduler, timers):
    calls = []
    scheduler.schedule("a1", 3.0, lambda: calls.append("a1"))
    scheduler.schedule("a2", 3.0, lambda: calls.append("a2"))

    assert scheduler.cancel("a1") is True
    timers.fire_all()

    assert calls == ["a2"]


def test_cancel_without_pending_task(scheduler):
    assert scheduler.cancel("a1") is False


def test_failing_task_is_contained(scheduler, timers):
    def boom():
        raise RuntimeError("boom")

    scheduler.schedule("a1", 0.0, boom)
    timers.fire_all()

    assert not scheduler.has_pending("a1")


def test_shutdown_cancels_everything(scheduler, timers):
    scheduler.schedule("a1", 3.0, lambda: None)
    scheduler.schedule("a2", 3.0, lambda: None)

    scheduler.shutdown()

    assert scheduler.pending_count() == 0
    assert all(t.cancelled for t in timers.timers)


def test_drain_with_real_timers():
    """Uses threading.Timer with a zero delay to check the real wiring."""
    scheduler = ConvergenceScheduler()
    done = threading.Event()
    scheduler.schedule("a1", 0.0, done.set)

    assert scheduler.drain(timeout=5.0) is True
    assert done.is_set()

import threading
import unittest
from datetime import datetime, timedelta

from services.clock_service import SystemClock
from services.config_service import ConfigServiceImpl
from services.timer_service import ScheduleTimerService
from services.virtual_timer_service import VirtualTimerService

START = datetime(2025, 1, 6, 8, 0)


class TestVirtualTimerService(unittest.TestCase):
    def setUp(self):
        self.timers = VirtualTimerService(start=START)
        self.calls = []

    def record(self, name):
        return lambda: self.calls.append((name, self.timers.now()))

    def test_fires_in_time_order_with_clock_at_fire_time(self):
        self.timers.call_at(START + timedelta(minutes=10), self.record("b"))
        self.timers.call_at(START + timedelta(minutes=5), self.record("a"))
        self.timers.call_at(START + timedelta(minutes=10), self.record("c"))
        self.assertEqual(self.timers.pending_count(), 3)
        self.assertEqual(self.timers.next_fire_time(), START + timedelta(minutes=5))

        fired = self.timers.advance(minutes=10)
        self.assertEqual(fired, 3)
        self.assertEqual(
            self.calls,
            [
                ("a", START + timedelta(minutes=5)),
                ("b", START + timedelta(minutes=10)),
                ("c", START + timedelta(minutes=10)),
            ],
        )
        self.assertEqual(self.timers.pending_count(), 0)

    def test_advance_stops_at_target(self):
        self.timers.call_at(START + timedelta(hours=2), self.record("late"))
        self.assertEqual(self.timers.advance(hours=1), 0)
        self.assertEqual(self.timers.now(), START + timedelta(hours=1))
        self.assertEqual(self.timers.today(), START.date())
        self.assertEqual(self.timers.pending_count(), 1)

    def test_cancel(self):
        handle = self.timers.call_at(START + timedelta(minutes=1), self.record("x"))
        self.assertTrue(self.timers.cancel(handle))
        self.assertFalse(self.timers.cancel(handle))
        self.timers.advance(minutes=5)
        self.assertEqual(self.calls, [])
        self.assertIsNone(self.timers.next_fire_time())

    def test_cancelled_timers_do_not_accumulate(self):
        keep = self.timers.call_at(START + timedelta(hours=1), self.record("keep"))
        for minutes in range(1, 201):
            handle = self.timers.call_at(START + timedelta(minutes=minutes), self.record("x"))
            self.timers.cancel(handle)
        self.assertLessEqual(len(self.timers._heap), 2)
        self.assertEqual(self.timers.pending_count(), 1)
        self.assertEqual(self.timers.next_fire_time(), keep.when)

    def test_next_fire_time_skips_cancelled_head(self):
        early = [
            self.timers.call_at(START + timedelta(minutes=m), self.record("early"))
            for m in (1, 2)
        ]
        for m in (3, 4, 5):
            self.timers.call_at(START + timedelta(minutes=m), self.record("late"))
        for handle in early:
            self.timers.cancel(handle)
        self.assertEqual(self.timers.next_fire_time(), START + timedelta(minutes=3))
        self.assertEqual(self.timers.advance(minutes=5), 3)

    def test_cancel_after_fire_returns_false(self):
        handle = self.timers.call_at(START + timedelta(minutes=1), self.record("x"))
        self.timers.advance(minutes=1)
        self.assertFalse(self.timers.cancel(handle))
        self.assertEqual(self.timers.pending_count(), 0)

    def test_timers_armed_by_callbacks_fire_within_span(self):
        def chain():
            self.calls.append(("first", self.timers.now()))
            self.timers.call_at(self.timers.now() + timedelta(minutes=5), self.record("second"))

        self.timers.call_at(START + timedelta(minutes=5), chain)
        self.timers.advance(minutes=15)
        self.assertEqual([name for name, _ in self.calls], ["first", "second"])
        self.assertEqual(self.calls[1][1], START + timedelta(minutes=10))

    def test_failing_callback_does_not_stop_others(self):
        def explode():
            raise RuntimeError("boom")

        self.timers.call_at(START + timedelta(minutes=1), explode)
        self.timers.call_at(START + timedelta(minutes=2), self.record("ok"))
        with self.assertLogs("services.virtual_timer_service", level="ERROR"):
            self.timers.advance(minutes=3)
        self.assertEqual([name for name, _ in self.calls], ["ok"])


class TestScheduleTimerService(unittest.TestCase):
    def setUp(self):
        config = ConfigServiceImpl({"TIMER_POLL_INTERVAL_SECONDS": 0.05})
        self.clock = SystemClock()
        self.timers = ScheduleTimerService(config_service=config, clock=self.clock)

    def tearDown(self):
        if self.timers._running:
            self.timers.stop()

    def test_cancel_releases_job(self):
        handle = self.timers.call_at(self.clock.now() + timedelta(minutes=1), lambda: None)
        self.assertEqual(self.timers.pending_count(), 1)
        self.assertTrue(self.timers.cancel(handle))
        self.assertFalse(self.timers.cancel(handle))
        self.assertEqual(self.timers.pending_count(), 0)
        self.assertEqual(self.timers._scheduler.jobs, [])
        self.assertEqual(self.timers.run_pending(), 0)

    def test_runner_thread_fires_callback_once(self):
        fired = threading.Event()
        calls = []

        def callback():
            calls.append(self.clock.now())
            fired.set()

        self.timers.start()
        self.timers.call_at(self.clock.now() + timedelta(milliseconds=100), callback)
        self.assertTrue(fired.wait(timeout=5))
        self.timers.run_pending()
        self.assertEqual(len(calls), 1)
        self.assertEqual(self.timers.pending_count(), 0)

    def test_callback_may_arm_new_timer(self):
        done = threading.Event()

        def first():
            self.timers.call_at(self.clock.now(), done.set)

        self.timers.start()
        self.timers.call_at(self.clock.now(), first)
        self.assertTrue(done.wait(timeout=5))


if __name__ == "__main__":
    unittest.main()

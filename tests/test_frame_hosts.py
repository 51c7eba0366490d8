import unittest

from frame_hosts import ManualFrameHost, TickHandle


class TestManualFrameHost(unittest.TestCase):
    def test_advance_runs_due_ticks(self):
        host = ManualFrameHost(start_ms=100.0, frame_ms=10.0)
        fired = []
        host.schedule_tick(lambda: fired.append(host.now()))
        self.assertEqual(host.pending_count, 1)
        self.assertEqual(host.advance(), 1)
        self.assertEqual(fired, [110.0])
        self.assertEqual(host.ticks_run, 1)

    def test_cancelled_ticks_do_not_run(self):
        host = ManualFrameHost()
        fired = []
        handle = host.schedule_tick(lambda: fired.append(1))
        handle.cancel()
        self.assertFalse(handle.pending)
        self.assertEqual(host.advance(), 0)
        self.assertEqual(fired, [])

    def test_ticks_scheduled_during_a_tick_wait_for_next_frame(self):
        host = ManualFrameHost()
        fired = []

        def tick():
            fired.append(host.now())
            host.schedule_tick(tick)

        host.schedule_tick(tick)
        host.advance(5.0)
        self.assertEqual(fired, [5.0])
        self.assertEqual(host.run_frames(2, 5.0), 2)
        self.assertEqual(fired, [5.0, 10.0, 15.0])

    def test_handle_cancel_after_fire_is_noop(self):
        cancelled = []
        handle = TickHandle(on_cancel=cancelled.append)
        handle.fired = True
        handle.cancel()
        self.assertFalse(handle.cancelled)
        self.assertEqual(cancelled, [])


if __name__ == "__main__":
    unittest.main()

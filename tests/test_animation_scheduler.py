import math
import unittest
from unittest import mock

from animation_scheduler import AnimationScheduler, Metrics, RunState
from config import EngineConfig
from errors import EngineConstructionError
from frame_hosts import ManualFrameHost
from module_registry import ModuleRegistry
from state_store import StateStore


class CountingRenderer:
    def __init__(self):
        self.renders = 0
        self.starts = 0
        self.stops = 0

    def render(self):
        self.renders += 1

    def on_start(self):
        self.starts += 1

    def on_stop(self):
        self.stops += 1


class TestAnimationScheduler(unittest.TestCase):
    def setUp(self):
        self.host = ManualFrameHost(frame_ms=16.0)
        self.store = StateStore()
        self.registry = ModuleRegistry()
        self.renderer = CountingRenderer()
        with mock.patch("module_registry.log_event"):
            self.registry.register('renderer', self.renderer)
        self.refreshes = 0
        self.config = EngineConfig(metrics_log_interval_ms=0)
        self.scheduler = AnimationScheduler(
            self.host, self.store, self.registry, self._refresh, config=self.config,
        )

    def _refresh(self):
        self.refreshes += 1

    def test_rejects_host_without_tick_api(self):
        with self.assertRaises(EngineConstructionError):
            AnimationScheduler(object(), self.store, self.registry, self._refresh)

    def test_render_requests_coalesce(self):
        for _ in range(10):
            self.scheduler.request_render()
        self.assertEqual(self.host.pending_count, 1)

        self.assertEqual(self.host.advance(), 1)
        self.assertEqual(self.renderer.renders, 1)
        self.assertEqual(self.refreshes, 1)
        self.assertFalse(self.scheduler.tick_pending)

        # Stopped: nothing reschedules itself
        self.assertEqual(self.host.advance(), 0)

    def test_start_and_stop(self):
        self.assertTrue(self.scheduler.start())
        self.assertFalse(self.scheduler.start())
        self.assertEqual(self.scheduler.run_state, RunState.RUNNING)
        self.assertTrue(self.store.state.is_running)
        self.assertEqual(self.renderer.starts, 1)

        self.host.run_frames(5)
        self.assertEqual(self.renderer.renders, 5)

        self.assertTrue(self.scheduler.stop())
        self.assertFalse(self.scheduler.stop())
        self.assertEqual(self.scheduler.run_state, RunState.STOPPED)
        self.assertEqual(self.host.pending_count, 0)
        self.assertEqual(self.renderer.stops, 1)

        self.host.run_frames(3)
        self.assertEqual(self.renderer.renders, 5)

    def test_toggle(self):
        self.scheduler.toggle()
        self.assertTrue(self.scheduler.running)
        self.scheduler.toggle()
        self.assertFalse(self.scheduler.running)

    def test_rotation_integrates_speed(self):
        self.store.update({'speed': 2.0})
        self.scheduler.start()
        self.host.run_frames(10)
        # 10 frames of 16 ms at 2 rad/s
        self.assertAlmostEqual(self.store.state.rotation, 2.0 * 0.16)

    def test_rotation_stays_wrapped(self):
        self.store.update({'speed': -128.0})
        self.scheduler.start()
        for _ in range(50):
            self.host.advance()
            rotation = self.store.state.rotation
            self.assertGreaterEqual(rotation, 0.0)
            self.assertLess(rotation, 2 * math.pi)

    def test_stale_frame_skips_rotation_but_renders(self):
        self.store.update({'speed': 1.0})
        self.scheduler.start()
        self.host.advance()
        before = self.store.state.rotation
        renders = self.renderer.renders

        with mock.patch("animation_scheduler.log_event"):
            self.host.advance(500.0)

        self.assertEqual(self.store.state.rotation, before)
        self.assertEqual(self.renderer.renders, renders + 1)
        self.assertEqual(self.scheduler.frames_skipped, 1)

        self.host.advance()
        self.assertAlmostEqual(self.store.state.rotation, before + 0.016)

    def test_stopped_render_does_not_rotate(self):
        self.store.update({'speed': 3.0})
        self.scheduler.request_render()
        self.host.advance()
        self.assertEqual(self.store.state.rotation, 0.0)
        self.assertEqual(self.renderer.renders, 1)

    def test_metrics_recorded_for_running_frames(self):
        metrics = Metrics()
        scheduler = AnimationScheduler(
            self.host, StateStore(), ModuleRegistry(), lambda: None,
            config=self.config, metrics=metrics,
        )
        scheduler.start()
        self.host.run_frames(3)
        self.assertAlmostEqual(metrics.frame_time, 16.0)
        self.assertAlmostEqual(metrics.fps, 62.5)

    def test_low_fps_counted(self):
        scheduler = AnimationScheduler(
            ManualFrameHost(frame_ms=50.0), StateStore(), ModuleRegistry(), lambda: None,
            config=self.config,
        )
        scheduler.start()
        scheduler.host.run_frames(4)
        self.assertEqual(scheduler.low_fps_frames, 4)

    def test_failing_refresh_still_reschedules(self):
        def broken():
            raise RuntimeError("boom")

        scheduler = AnimationScheduler(self.host, StateStore(), ModuleRegistry(), broken, config=self.config)
        scheduler.start()
        with mock.patch("animation_scheduler.log_event") as log_event_mock:
            self.host.advance()
        self.assertTrue(scheduler.tick_pending)
        self.assertEqual(log_event_mock.call_args.args[0], "ERROR")

    def test_periodic_metrics_log(self):
        config = EngineConfig(metrics_log_interval_ms=100)
        scheduler = AnimationScheduler(self.host, StateStore(), ModuleRegistry(), lambda: None, config=config)
        scheduler.start()
        with mock.patch("animation_scheduler.log_event") as log_event_mock:
            self.host.run_frames(7)
        tags = [call.args[1] for call in log_event_mock.call_args_list]
        self.assertIn("Metrics", tags)

    def test_shutdown_leaves_nothing_pending(self):
        self.scheduler.start()
        self.scheduler.request_render()
        self.scheduler.shutdown()
        self.assertEqual(self.host.pending_count, 0)
        self.assertFalse(self.store.state.is_running)


if __name__ == "__main__":
    unittest.main()

import math
import random
import unittest
from unittest import mock

from config import EngineConfig, EngineState
from engine import HarmonicEngine
from frame_hosts import ManualFrameHost
from harmonic_series import generate_series


class DummyRenderer:
    def __init__(self):
        self.renders = 0
        self.updates = []
        self.sizes = []
        self.attached = None
        self.initialized = False

    def attach(self, engine):
        self.attached = engine

    def initialize(self):
        self.initialized = True

    def on_state_update(self, state, change_set):
        self.updates.append(change_set)

    def on_resize(self, width, height):
        self.sizes.append((width, height))

    def render(self):
        self.renders += 1


def make_engine(**kwargs):
    host = ManualFrameHost(frame_ms=16.0)
    config = EngineConfig(metrics_log_interval_ms=0)
    return HarmonicEngine(host=host, config=config, **kwargs), host


class TestEngineDerivedState(unittest.TestCase):
    def setUp(self):
        self.engine, self.host = make_engine()

    def test_harmonics_follow_state(self):
        self.assertEqual(self.engine.get_harmonics(), generate_series(8))
        self.engine.update({'harmonic_count': 3, 'harmonic_type': 'odd'})
        self.assertEqual([h.ratio for h in self.engine.get_harmonics()], [1.0, 3.0, 5.0])

    def test_get_harmonics_returns_a_copy(self):
        harmonics = self.engine.get_harmonics()
        harmonics.clear()
        self.assertEqual(len(self.engine.get_harmonics()), 8)

    def test_unrelated_change_does_not_regenerate(self):
        self.engine.refresh_derived()
        generation = self.engine.harmonics_generation
        waveform = self.engine.get_waveform()

        self.engine.update({'zoom': 2.0, 'show_axis': False})
        self.host.advance()

        self.assertEqual(self.engine.harmonics_generation, generation)
        self.assertIs(self.engine.get_waveform(), waveform)

    def test_wavelength_change_regenerates_waveform_only(self):
        self.engine.refresh_derived()
        harmonics = self.engine.harmonics_generation
        waveforms = self.engine.waveform_generation

        self.engine.update({'wavelength': 2.0})
        self.host.advance()

        self.assertEqual(self.engine.harmonics_generation, harmonics)
        self.assertEqual(self.engine.waveform_generation, waveforms + 1)
        self.assertEqual(self.engine.get_waveform().wavelength, 2.0)

    def test_waveform_is_never_stale(self):
        first = self.engine.get_waveform()
        self.engine.update({'harmonic_type': 'prime'})
        # Read before any tick: lazily recomputed
        second = self.engine.get_waveform()
        self.assertIsNot(first, second)
        self.assertFalse(self.engine.dirty.harmonics)
        self.assertFalse(self.engine.dirty.waveform)

    def test_angle_cache_tracks_axis_count(self):
        self.assertEqual(len(self.engine.get_angle_cache()), 6)
        self.engine.update({'axis_count': 12})
        self.assertEqual(len(self.engine.get_angle_cache()), 12)

    def test_waveform_peak_uses_reference_radius(self):
        self.engine.on_resize(1000, 500)
        self.assertEqual(self.engine.reference_radius, 200.0)
        self.assertAlmostEqual(self.engine.get_waveform().peak, 40.0)

    def test_random_phase_with_injected_rng(self):
        engine, _ = make_engine(rng=random.Random(3))
        engine.update({'harmonic_phase': 'random'})
        phases = [h.phase for h in engine.get_harmonics()]
        self.assertTrue(all(0.0 <= p <= 2 * math.pi for p in phases))
        self.assertGreater(len(set(phases)), 1)


class TestEngineCoalescing(unittest.TestCase):
    def test_many_updates_one_tick(self):
        engine, host = make_engine()
        renderer = DummyRenderer()
        engine.register_module('renderer', renderer)
        engine.refresh_derived()
        generation = engine.harmonics_generation

        for count in range(2, 12):
            engine.update({'harmonic_count': count})

        self.assertEqual(host.pending_count, 1)
        host.advance()
        self.assertEqual(renderer.renders, 1)
        self.assertEqual(engine.harmonics_generation, generation + 1)
        self.assertEqual(len(engine.get_harmonics()), 11)
        self.assertEqual(len(renderer.updates), 10)

    def test_noop_update_schedules_nothing(self):
        engine, host = make_engine()
        engine.update({'harmonic_count': 8})
        self.assertEqual(host.pending_count, 0)


class TestEngineLifecycle(unittest.TestCase):
    def test_register_attach_and_initialize(self):
        engine, host = make_engine()
        renderer = DummyRenderer()
        engine.register_module('renderer', renderer)
        self.assertIs(renderer.attached, engine)
        self.assertIs(engine.get_module('renderer'), renderer)

        self.assertTrue(engine.initialize())
        self.assertTrue(renderer.initialized)
        self.assertFalse(engine.dirty.any())
        host.advance()
        self.assertEqual(renderer.renders, 1)

    def test_failing_attach_is_logged(self):
        class Broken:
            def attach(self, engine):
                raise RuntimeError("no")

        engine, _ = make_engine()
        with mock.patch("engine.log_event") as log_event_mock:
            engine.register_module('broken', Broken())
        self.assertEqual(log_event_mock.call_args.args[0], "ERROR")
        self.assertIn('broken', engine.registry)

    def test_start_stop_rotation(self):
        engine, host = make_engine()
        engine.update({'speed': 1.0})
        self.assertTrue(engine.start())
        self.assertTrue(engine.is_running)
        host.run_frames(5)
        self.assertAlmostEqual(engine.get_state().rotation, 0.08)

        self.assertTrue(engine.stop())
        rotation = engine.get_state().rotation
        host.run_frames(5)
        self.assertEqual(engine.get_state().rotation, rotation)
        self.assertEqual(host.pending_count, 0)

    def test_toggle(self):
        engine, _ = make_engine()
        engine.toggle()
        self.assertTrue(engine.is_running)
        engine.toggle()
        self.assertFalse(engine.is_running)

    def test_on_resize(self):
        engine, host = make_engine()
        renderer = DummyRenderer()
        engine.register_module('renderer', renderer)
        engine.refresh_derived()

        engine.on_resize(400, 900)

        self.assertEqual(engine.reference_radius, 160.0)
        self.assertTrue(engine.dirty.waveform)
        self.assertEqual(renderer.sizes, [(400.0, 900.0)])
        self.assertEqual(host.pending_count, 1)

    def test_on_resize_rejects_bad_sizes(self):
        engine, _ = make_engine()
        radius = engine.reference_radius
        with mock.patch("engine.log_event") as log_event_mock:
            engine.on_resize(0, 600)
            engine.on_resize("wide", 600)
        self.assertEqual(engine.reference_radius, radius)
        self.assertEqual(log_event_mock.call_count, 2)

    def test_undo_redo_through_engine(self):
        engine, _ = make_engine()
        engine.update({'harmonic_type': 'prime'})
        engine.undo()
        self.assertEqual(engine.get('harmonic_type'), 'natural')
        self.assertEqual(engine.get_harmonics()[0].ratio, 1.0)
        engine.redo()
        self.assertEqual(engine.get_harmonics()[0].ratio, 2.0)

    def test_initial_state_mapping_and_dataclass(self):
        engine, _ = make_engine(initial_state={'harmonic_count': 4, 'zoom': 2.0})
        self.assertEqual(engine.get('harmonic_count'), 4)
        self.assertFalse(engine.store.can_undo)

        engine, _ = make_engine(initial_state=EngineState(axis_count=9))
        self.assertEqual(len(engine.get_angle_cache()), 9)

    def test_config_mapping_overrides_defaults(self):
        engine = HarmonicEngine(host=ManualFrameHost(), config={'resolution': 360, 'history_size': 5})
        self.assertEqual(engine.config.resolution, 360)
        self.assertEqual(engine.config.stale_frame_ms, 100.0)
        self.assertEqual(engine.get_waveform().resolution, 360)

    def test_get_state_is_a_copy(self):
        engine, _ = make_engine()
        state = engine.get_state()
        state.harmonic_count = 30
        self.assertEqual(engine.get('harmonic_count'), 8)

    def test_metrics(self):
        engine, host = make_engine()
        engine.start()
        host.run_frames(2)
        engine.report_audio_latency(12.5)
        metrics = engine.get_metrics()
        self.assertAlmostEqual(metrics.fps, 62.5)
        self.assertEqual(metrics.audio_latency, 12.5)
        metrics.fps = 0.0
        self.assertAlmostEqual(engine.get_metrics().fps, 62.5)

    def test_shutdown(self):
        engine, host = make_engine()
        engine.register_module('renderer', DummyRenderer())
        engine.start()
        engine.shutdown()
        self.assertFalse(engine.is_running)
        self.assertEqual(host.pending_count, 0)
        self.assertEqual(len(engine.registry), 0)
        engine.update({'zoom': 3.0})
        self.assertEqual(host.pending_count, 0)

    def test_debug_messages(self):
        engine, _ = make_engine()
        engine.initialize()
        self.assertTrue(any("Initializing" in m for m in engine.debug_messages()))


if __name__ == "__main__":
    unittest.main()

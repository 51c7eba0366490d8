#!/usr/bin/env python3
"""
HarmonicXplorer - Interactive harmonic series visualizer

Plots the additive synthesis of a harmonic series around a rotating circle
and can play the same series as sound.
"""

import argparse
import cProfile
import sys
import time


def run_app(app_argv: list[str], log_level: str, audio: bool) -> int:
    t_pyqt = time.perf_counter()
    from PyQt6.QtWidgets import QApplication

    print(
        f"[Startup] GUI framework loaded (+{(time.perf_counter() - t_pyqt) * 1000:.0f} ms). "
        "Initializing application...",
        flush=True,
    )
    app = QApplication(app_argv)
    app.setStyle("Fusion")

    from config import EngineConfig
    from engine import HarmonicEngine
    from viewer import HarmonicXplorerWindow, QtFrameHost

    engine = HarmonicEngine(host=QtFrameHost(), config=EngineConfig(log_level=log_level))
    output = None
    if audio:
        from audio_output import AudioOutput
        output = AudioOutput()

    window = HarmonicXplorerWindow(engine, output)
    print("\nInitialization complete. Starting GUI...\n", flush=True)
    window.show()
    return app.exec()


def run_headless(frames: int, log_level: str, settings: list[str]) -> int:
    """Drive the engine on a manual clock and print the resulting metrics."""
    from config import EngineConfig
    from engine import HarmonicEngine
    from frame_hosts import ManualFrameHost

    host = ManualFrameHost()
    engine = HarmonicEngine(host=host, config=EngineConfig(log_level=log_level))
    for item in settings:
        key, _, value = item.partition("=")
        engine.update({key.strip(): value.strip()})

    engine.initialize()
    engine.start()
    host.run_frames(frames)
    engine.stop()

    state = engine.get_state()
    waveform = engine.get_waveform()
    metrics = engine.get_metrics()
    print(f"harmonics: {[h.ratio for h in engine.get_harmonics()]}")
    print(f"waveform: {waveform.resolution} samples, peak {waveform.peak:.3f}")
    print(f"rotation: {state.rotation:.4f} rad after {engine.scheduler.frames_rendered} frames")
    print(f"waveform calc: {metrics.waveform_calc_time:.2f} ms")
    for line in engine.debug_messages():
        print(f"  {line}")
    engine.shutdown()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run HarmonicXplorer")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable cProfile and save stats to --profile-out",
    )
    parser.add_argument(
        "--profile-out",
        default="profile.prof",
        help="Path to save cProfile stats (default: profile.prof)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--no-audio",
        action="store_true",
        help="Do not open an audio output stream",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run the engine without a window on a manual frame clock",
    )
    parser.add_argument(
        "--frames",
        type=int,
        default=120,
        help="Frames to run in --headless mode (default: 120)",
    )
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Initial parameter for --headless mode, e.g. --set harmonic_type=prime --set speed=2",
    )
    args = parser.parse_args()

    # Keep Qt argument list clean; avoid passing our flags downstream
    app_argv = [sys.argv[0]]

    def launch() -> int:
        if args.headless:
            return run_headless(args.frames, args.log_level, args.set)
        return run_app(app_argv, args.log_level, not args.no_audio)

    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        exit_code = launch()
        profiler.disable()
        profiler.dump_stats(args.profile_out)
    else:
        exit_code = launch()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()

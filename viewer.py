"""
harmonicxplorer - Viewer
Qt window: a pyqtgraph canvas registered as the engine's renderer, plus a
small control panel. All parameter changes go through engine.update().
"""

import time

import numpy as np

from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QGroupBox, QLabel,
    QComboBox, QPushButton, QCheckBox, QSpinBox, QDoubleSpinBox,
)
from PyQt6.QtCore import Qt, QTimer

import pyqtgraph as pg
pg.setConfigOptions(antialias=True, useOpenGL=False)

from config import COORDINATE_SYSTEMS, PARAM_RANGE_LIMITS, PHASE_POLICIES, PHASE_PRESETS, RADIAL_SYSTEMS, SERIES_TYPES
from frame_hosts import TickHandle
from logging_utils import log_event
from waveform_synth import project_waveform

FRAME_INTERVAL_MS = 16


class QtFrameHost:
    """Ticks on single-shot QTimers; cancelling stops the timer."""

    def __init__(self, interval_ms: int = FRAME_INTERVAL_MS):
        self.interval_ms = interval_ms
        self._timers: dict[TickHandle, QTimer] = {}

    def now(self) -> float:
        return time.perf_counter() * 1000.0

    def schedule_tick(self, callback) -> TickHandle:
        timer = QTimer()
        timer.setSingleShot(True)
        handle = TickHandle(on_cancel=self._on_cancel)
        self._timers[handle] = timer

        def fire():
            self._timers.pop(handle, None)
            if not handle.pending:
                return
            handle.fired = True
            callback()

        timer.timeout.connect(fire)
        timer.start(self.interval_ms)
        return handle

    def _on_cancel(self, handle: TickHandle) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.stop()


class WaveformCanvas(pg.PlotWidget):
    """Engine renderer: projected waveform, reference circle and axis spokes."""

    def __init__(self, engine, parent=None):
        super().__init__(parent)
        self.engine = engine

        self.setBackground('#121212')
        self.setMouseEnabled(x=False, y=False)
        self.setMenuEnabled(False)
        self.setAspectLocked(True)
        self.hideAxis('left')
        self.hideAxis('bottom')

        self.circle_curve = pg.PlotCurveItem(pen=pg.mkPen('#4CAF50', width=1))
        self.addItem(self.circle_curve)
        self.axis_curve = pg.PlotCurveItem(pen=pg.mkPen('#3a3a3a', width=1), connect='pairs')
        self.addItem(self.axis_curve)
        self.wave_curve = pg.PlotCurveItem(pen=pg.mkPen('#FFFFFF', width=2))
        self.addItem(self.wave_curve)

        self._theta = np.linspace(0, 2 * np.pi, 200)

    # ----- engine hooks -----

    def on_resize(self, width, height):
        half_w, half_h = width / 2.0, height / 2.0
        self.setXRange(-half_w, half_w, padding=0)
        self.setYRange(-half_h, half_h, padding=0)

    def render(self):
        state = self.engine.get_state()
        self.setBackground(state.background_color)
        radius = self.engine.reference_radius * state.zoom
        radial = state.coordinate_system in RADIAL_SYSTEMS

        if state.show_waveform:
            xs, ys = project_waveform(self.engine.get_waveform(), state.rotation, state.zoom)
            if radial:
                xs, ys = np.append(xs, xs[0]), np.append(ys, ys[0])
            self.wave_curve.setPen(pg.mkPen(state.waveform_color, width=2))
            self.wave_curve.setData(xs, ys)
        else:
            self.wave_curve.setData([], [])

        circle = state.shapes.circle
        if state.show_geometry and circle.show and radial:
            self.circle_curve.setPen(pg.mkPen(circle.color, width=1))
            self.circle_curve.setData(radius * np.cos(self._theta), radius * np.sin(self._theta))
        else:
            self.circle_curve.setData([], [])

        if state.show_axis:
            self._draw_axes(radius, state.rotation, radial, state.axis_color)
        else:
            self.axis_curve.setData([], [])

    def _draw_axes(self, radius, rotation, radial, color):
        if not radial:
            self.axis_curve.setData([-radius, radius], [0.0, 0.0])
            return
        cos_r, sin_r = np.cos(rotation), np.sin(rotation)
        xs, ys = [], []
        for entry in self.engine.get_angle_cache():
            # Rotate the cached unit vector instead of recomputing sin/cos per spoke
            x = entry.cos * cos_r - entry.sin * sin_r
            y = entry.sin * cos_r + entry.cos * sin_r
            xs.extend((0.0, x * radius))
            ys.extend((0.0, y * radius))
        self.axis_curve.setPen(pg.mkPen(color, width=1))
        self.axis_curve.setData(xs, ys)

    # ----- gestures -----

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            self.engine.interaction.pointer_down(pos.x(), pos.y())
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        pos = event.position()
        self.engine.interaction.pointer_move(pos.x(), pos.y())
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        self.engine.interaction.pointer_up()
        super().mouseReleaseEvent(event)

    def wheelEvent(self, event):
        # Qt reports +120 per notch away from the user; scrolling away zooms in
        self.engine.interaction.wheel(-event.angleDelta().y())
        event.accept()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        size = event.size()
        self.engine.on_resize(size.width(), size.height())


class HarmonicXplorerWindow(QMainWindow):
    def __init__(self, engine, audio=None):
        super().__init__()
        self.engine = engine
        self.audio = audio
        self._syncing = False

        self.setWindowTitle("HarmonicXplorer")
        self.resize(engine.config.initial_width + 260, engine.config.initial_height)

        self.canvas = WaveformCanvas(engine)
        engine.register_module('renderer', self.canvas)
        engine.register_module('window', self)
        if audio is not None:
            engine.register_module('audio', audio)

        central = QWidget()
        layout = QHBoxLayout(central)
        layout.addWidget(self.canvas, stretch=1)
        layout.addWidget(self._build_controls())
        self.setCentralWidget(central)

        engine.initialize()
        self._sync_controls(engine.get_state())

    def _build_controls(self) -> QWidget:
        panel = QGroupBox("Harmonics")
        panel.setFixedWidth(240)
        box = QVBoxLayout(panel)

        self.play_btn = QPushButton("Start")
        self.play_btn.clicked.connect(self.engine.toggle)
        box.addWidget(self.play_btn)

        row = QHBoxLayout()
        undo_btn = QPushButton("Undo")
        undo_btn.clicked.connect(self.engine.undo)
        redo_btn = QPushButton("Redo")
        redo_btn.clicked.connect(self.engine.redo)
        reset_btn = QPushButton("Reset")
        reset_btn.clicked.connect(self.engine.reset_to_defaults)
        for btn in (undo_btn, redo_btn, reset_btn):
            row.addWidget(btn)
        box.addLayout(row)

        low, high = PARAM_RANGE_LIMITS['harmonic_count']
        self.count_spin = QSpinBox()
        self.count_spin.setRange(int(low), int(high))
        self.count_spin.valueChanged.connect(lambda v: self._submit('harmonic_count', v))
        box.addWidget(QLabel("Count"))
        box.addWidget(self.count_spin)

        self.type_combo = QComboBox()
        self.type_combo.addItems(SERIES_TYPES)
        self.type_combo.currentTextChanged.connect(lambda v: self._submit('harmonic_type', v))
        box.addWidget(QLabel("Series"))
        box.addWidget(self.type_combo)

        self.phase_combo = QComboBox()
        self.phase_combo.addItems(PHASE_POLICIES + PHASE_PRESETS)
        self.phase_combo.currentTextChanged.connect(lambda v: self._submit('harmonic_phase', v))
        box.addWidget(QLabel("Phase"))
        box.addWidget(self.phase_combo)

        self.coord_combo = QComboBox()
        self.coord_combo.addItems(COORDINATE_SYSTEMS)
        self.coord_combo.currentTextChanged.connect(lambda v: self._submit('coordinate_system', v))
        box.addWidget(QLabel("Coordinates"))
        box.addWidget(self.coord_combo)

        low, high = PARAM_RANGE_LIMITS['axis_count']
        self.axis_spin = QSpinBox()
        self.axis_spin.setRange(int(low), int(high))
        self.axis_spin.valueChanged.connect(lambda v: self._submit('axis_count', v))
        box.addWidget(QLabel("Axes"))
        box.addWidget(self.axis_spin)

        low, high = PARAM_RANGE_LIMITS['wavelength']
        self.wavelength_spin = QDoubleSpinBox()
        self.wavelength_spin.setRange(low, high)
        self.wavelength_spin.setSingleStep(0.5)
        self.wavelength_spin.valueChanged.connect(lambda v: self._submit('wavelength', v))
        box.addWidget(QLabel("Wavelength"))
        box.addWidget(self.wavelength_spin)

        self.audio_check = QCheckBox("Audio")
        self.audio_check.toggled.connect(lambda v: self._submit('audio_enabled', v))
        self.audio_check.setEnabled(self.audio is not None)
        box.addWidget(self.audio_check)

        self.fps_label = QLabel("")
        box.addWidget(self.fps_label)
        box.addStretch(1)
        return panel

    def _submit(self, key, value):
        if self._syncing:
            return
        self.engine.update({key: value})

    def _sync_controls(self, state):
        """Mirror engine state into the widgets without echoing updates back."""
        self._syncing = True
        try:
            self.play_btn.setText("Stop" if state.is_running else "Start")
            self.count_spin.setValue(state.harmonic_count)
            self.type_combo.setCurrentText(state.harmonic_type)
            self.phase_combo.setCurrentText(state.harmonic_phase)
            self.coord_combo.setCurrentText(state.coordinate_system)
            self.axis_spin.setValue(state.axis_count)
            self.wavelength_spin.setValue(state.wavelength)
            self.audio_check.setChecked(state.audio_enabled)
        finally:
            self._syncing = False

    # ----- engine hooks -----

    def on_state_update(self, state, change_set):
        if change_set.touches('rotation') and len(change_set.changed_keys) == 1:
            return
        self._sync_controls(state)

    def render(self):
        metrics = self.engine.get_metrics()
        if self.engine.is_running:
            self.fps_label.setText(f"{metrics.fps:.0f} fps  {metrics.render_time:.1f} ms")

    def keyPressEvent(self, event):
        if event.key() == Qt.Key.Key_Space:
            self.engine.toggle()
        elif event.key() == Qt.Key.Key_Z and event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            self.engine.undo()
        elif event.key() == Qt.Key.Key_Y and event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            self.engine.redo()
        else:
            super().keyPressEvent(event)

    def closeEvent(self, event):
        log_event("INFO", "Viewer", "Window closing")
        if self.audio is not None:
            self.audio.shutdown()
        self.engine.shutdown()
        super().closeEvent(event)

"""
harmonicxplorer - Interaction Controller
Turns pointer drags, wheel steps and pinches into bounded state deltas.
It only ever writes through StateStore.update().
"""

import math
from dataclasses import dataclass
from typing import Optional

from config import PARAM_RANGE_LIMITS, wrap_angle
from state_store import ChangeSet, StateStore

DRAG_SPEED_GAIN = 0.01          # rad/s of speed per pixel while running
DRAG_ROTATION_PIXELS = 250.0    # pixels per radian while stopped
WHEEL_SCALE = 0.01              # wheel delta units -> zoom delta
PINCH_SCALE = 0.01              # finger-distance pixels -> zoom delta
MIN_ZOOM_STEP = 0.05


@dataclass
class PointerState:
    dragging: bool = False
    last_x: float = 0.0
    last_y: float = 0.0
    pinch_distance: float = 0.0


class InteractionController:
    def __init__(self, store: StateStore, zoom_acceleration: float = 0.1):
        self.store = store
        self.zoom_acceleration = zoom_acceleration
        self.pointer = PointerState()

    @staticmethod
    def _clamp(path: str, value: float) -> float:
        low, high = PARAM_RANGE_LIMITS[path]
        return max(low, min(high, value))

    def _submit(self, partial: dict) -> ChangeSet:
        # Continuous gestures are not undo steps
        return self.store.update(partial, record_history=False)

    # ----- deltas -----

    def drag(self, delta_x: float) -> ChangeSet:
        """Horizontal drag: spin faster/slower while running, rotate directly when stopped."""
        state = self.store.state
        if state.is_running:
            speed = self._clamp('speed', state.speed + delta_x * DRAG_SPEED_GAIN)
            return self._submit({'speed': speed})
        rotation = wrap_angle(state.rotation + delta_x / DRAG_ROTATION_PIXELS)
        return self._submit({'rotation': rotation})

    def zoom_by(self, delta: float) -> ChangeSet:
        """Accelerating zoom: the step grows with the current zoom level."""
        zoom = self.store.state.zoom
        step = max(MIN_ZOOM_STEP, zoom * self.zoom_acceleration)
        return self._submit({'zoom': self._clamp('zoom', zoom - delta * step)})

    # ----- raw gesture events -----

    def pointer_down(self, x: float, y: float) -> None:
        self.pointer.dragging = True
        self.pointer.last_x = x
        self.pointer.last_y = y

    def pointer_move(self, x: float, y: float) -> Optional[ChangeSet]:
        if not self.pointer.dragging:
            return None
        delta_x = x - self.pointer.last_x
        self.pointer.last_x = x
        self.pointer.last_y = y
        if delta_x == 0:
            return None
        return self.drag(delta_x)

    def pointer_up(self) -> None:
        self.pointer.dragging = False

    def wheel(self, delta_y: float) -> ChangeSet:
        return self.zoom_by(delta_y * WHEEL_SCALE)

    def pinch_start(self, distance: float) -> None:
        self.pointer.pinch_distance = distance

    def pinch_move(self, distance: float) -> Optional[ChangeSet]:
        if self.pointer.pinch_distance <= 0:
            self.pointer.pinch_distance = distance
            return None
        delta = distance - self.pointer.pinch_distance
        self.pointer.pinch_distance = distance
        # Fingers apart -> zoom in
        return self.zoom_by(-delta * PINCH_SCALE)

    def pinch_end(self) -> None:
        self.pointer.pinch_distance = 0.0

    @staticmethod
    def touch_distance(x1: float, y1: float, x2: float, y2: float) -> float:
        return math.hypot(x1 - x2, y1 - y2)

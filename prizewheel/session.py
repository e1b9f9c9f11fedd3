# =============================================================================
# --- SESSION CONTROLLER ---
# Owns the join window, the hold-to-reset gesture and the mapping from
# operator input to wheel actions. Everything here runs on the frame loop;
# only the join-window flag is read from the chat thread.
# =============================================================================

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from prizewheel.config import JOIN_WINDOW_SEC, RESET_HOLD_SEC
from prizewheel.roster import Participant, Roster
from prizewheel.wheel import Phase, WheelSimulation

logger = logging.getLogger(__name__)


class InputSource(enum.Enum):
    KEYBOARD = "keyboard"
    POINTER = "pointer"
    BUTTON = "button"


# ========= JOIN WINDOW =========

class JoinWindow:
    """Open/closed flag with a countdown. The countdown stops at zero; only the operator closes the window."""

    def __init__(self, duration=JOIN_WINDOW_SEC):
        self.duration = duration
        self.elapsed = 0.0
        self._open = threading.Event()

    @property
    def is_open(self):
        return self._open.is_set()

    @property
    def remaining(self):
        return max(0.0, self.duration - self.elapsed) if self.is_open else 0.0

    def open(self):
        if self.is_open:
            return
        self.elapsed = 0.0
        self._open.set()

    def close(self):
        self._open.clear()

    def toggle(self):
        if self.is_open:
            self.close()
        else:
            self.open()

    def tick(self, dt):
        if self.is_open:
            self.elapsed = min(self.duration, self.elapsed + dt)


# ========= RESET GESTURE =========

class ResetGesture:
    """A hold that must last `hold_seconds` before it commits. One source at a time."""

    def __init__(self, hold_seconds=RESET_HOLD_SEC):
        self.hold_seconds = hold_seconds
        self.active = False
        self.elapsed = 0.0
        self.source: Optional[InputSource] = None

    def begin(self, source: InputSource) -> bool:
        if self.active:
            return False
        self.active = True
        self.elapsed = 0.0
        self.source = source
        return True

    def advance(self, dt) -> bool:
        """Adds dt to the hold. Returns True (and deactivates) once the hold is long enough."""
        if not self.active:
            return False
        self.elapsed += dt
        if self.elapsed >= self.hold_seconds:
            self.cancel()
            return True
        return False

    def release(self, source: InputSource):
        """Cancels the hold, but only if `source` is the one that started it."""
        if self.active and self.source is source:
            self.cancel()

    def cancel(self):
        self.active = False
        self.elapsed = 0.0
        self.source = None


# ========= SNAPSHOT =========

@dataclass(frozen=True)
class Snapshot:
    """Everything the renderer needs for one frame. Read-only."""
    angle: float
    phase: Phase
    winner_index: int
    roster: Tuple[Participant, ...]
    flash_on: bool
    celebration_elapsed: float
    join_window_open: bool
    join_window_remaining: float
    reset_gesture_active: bool
    reset_gesture_elapsed: float
    active_index: int = -1
    winner: Optional[Participant] = None


# ========= CONTROLLER =========

class SessionController:
    """Arbitrates operator input and advances the wheel once per frame."""

    def __init__(self, roster: Roster, wheel: Optional[WheelSimulation] = None,
                 join_window: Optional[JoinWindow] = None, owner: str = "",
                 hold_seconds=RESET_HOLD_SEC,
                 on_state: Optional[Callable[[str], None]] = None):
        self.roster = roster
        self.wheel = wheel or WheelSimulation()
        self.join_window = join_window or JoinWindow()
        self.gesture = ResetGesture(hold_seconds)
        self.owner = owner
        self.on_state = on_state
        if owner:
            self.roster.add_if_absent(owner)

    def is_join_open(self) -> bool:
        """Safe to call from the chat thread."""
        return self.join_window.is_open

    # --- Operator input ---

    def primary_down(self, source: InputSource):
        """Spin / hold-to-reset trigger. Ignored while the join window is open."""
        if self.join_window.is_open:
            return
        if self.wheel.winner_showing:
            self.gesture.begin(source)
            return
        self.request_spin()

    def request_spin(self) -> bool:
        """Starts a spin if the wheel is idle, has enough players and the join window is closed."""
        if self.wheel.start_spin(len(self.roster), self.join_window.is_open):
            self._publish("spinning")
            return True
        return False

    def primary_up(self, source: InputSource):
        self.gesture.release(source)

    def toggle_join_window(self):
        if self.wheel.winner_showing:
            logger.info("Join toggle ignored (winner selected)")
            return
        if self.wheel.spinning:
            logger.info("Join toggle ignored (wheel spinning)")
            return
        self.join_window.toggle()
        logger.info("Join state toggled to %s", "OPEN" if self.join_window.is_open else "CLOSED")

    def reset_round(self):
        """Clears the winner and the roster and closes the join window for the next round."""
        self.wheel.reset()
        self.gesture.cancel()
        self.roster.clear()
        self.join_window.close()
        logger.info("Reset for next round.")
        if self.owner:
            self.roster.add_if_absent(self.owner)
        self._publish("idle")

    # --- Frame update ---

    def tick(self, dt: float) -> Snapshot:
        participants = self.roster.snapshot()

        self.join_window.tick(dt)

        if self.gesture.active:
            if not self.wheel.winner_showing:
                self.gesture.cancel()
            elif self.gesture.advance(dt):
                self.reset_round()
                participants = self.roster.snapshot()

        was_spinning = self.wheel.spinning
        self.wheel.tick(dt, participants)
        if was_spinning and self.wheel.phase is Phase.CELEBRATING:
            self._publish("flash_white")

        return self.snapshot(participants)

    def snapshot(self, participants=None) -> Snapshot:
        if participants is None:
            participants = self.roster.snapshot()
        return Snapshot(
            angle=self.wheel.angle,
            phase=self.wheel.phase,
            winner_index=self.wheel.winner_index,
            roster=tuple(participants),
            flash_on=self.wheel.flash_on,
            celebration_elapsed=self.wheel.celebration_elapsed,
            join_window_open=self.join_window.is_open,
            join_window_remaining=self.join_window.remaining,
            reset_gesture_active=self.gesture.active,
            reset_gesture_elapsed=self.gesture.elapsed,
            active_index=self.wheel.active_index(len(participants)),
            winner=self.wheel.winner,
        )

    def _publish(self, state):
        if self.on_state is not None:
            self.on_state(state)

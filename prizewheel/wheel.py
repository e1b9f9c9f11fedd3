# =============================================================================
# --- WHEEL SIMULATION ---
# Per-frame physics for the wheel: an initial kick, constant friction, and a
# winner read off the slice under the pointer once the wheel stops.
# =============================================================================

import enum
import logging
import math
import random
from typing import Optional, Sequence

from prizewheel.config import (
    MAX_FRICTION, MAX_SPIN_SPEED, MIN_FRICTION, MIN_PLAYERS, MIN_SPIN_SPEED,
    WINNER_FLASH_PERIOD, WINNER_FLASH_SEC,
)
from prizewheel.roster import Participant

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi

# The pointer sits at 12 o'clock. Screen y grows downward, so "up" is -90 degrees.
POINTER_ANGLE = -math.pi / 2


class Phase(enum.Enum):
    IDLE = "idle"
    SPINNING = "spinning"
    CELEBRATING = "celebrating"


def wrap_angle(angle: float) -> float:
    """Wraps an angle into [0, 2*pi)."""
    wrapped = math.fmod(angle, TWO_PI)
    if wrapped < 0.0:
        wrapped += TWO_PI
    # fmod of a tiny negative number plus 2*pi can round up to exactly 2*pi.
    if wrapped >= TWO_PI:
        wrapped = 0.0
    return wrapped


def pointer_slice_index(angle: float, n: int) -> int:
    """Index of the slice under the pointer for a wheel of `n` equal slices, or -1 if empty."""
    if n <= 0:
        return -1
    slice_width = TWO_PI / n
    index = int(math.floor(wrap_angle(POINTER_ANGLE - angle) / slice_width))
    return min(index, n - 1)


class WheelSimulation:
    """Encapsulates the wheel's angle, spin and winner state. Advanced only by tick()."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.angle = 0.0
        self.angular_velocity = 0.0
        self.friction = (MIN_FRICTION + MAX_FRICTION) / 2
        self.phase = Phase.IDLE
        self.winner_index = -1
        self.winner: Optional[Participant] = None
        self.flash_remaining = 0.0
        self.flash_elapsed = 0.0
        self.celebration_elapsed = 0.0

    @property
    def spinning(self):
        return self.phase is Phase.SPINNING

    @property
    def winner_showing(self):
        return self.phase is Phase.CELEBRATING or self.winner_index >= 0

    @property
    def flash_on(self):
        """True during the 'lit' half of each flash period while the winner is flashing."""
        if self.flash_remaining <= 0.0:
            return False
        return int(math.floor(self.flash_elapsed / WINNER_FLASH_PERIOD)) % 2 == 0

    def active_index(self, n: int) -> int:
        """Slice currently passing under the pointer while spinning, else -1."""
        return pointer_slice_index(self.angle, n) if self.spinning else -1

    def start_spin(self, roster_size: int, join_window_open: bool) -> bool:
        """
        Kicks the wheel with a random speed and friction.
        A no-op (returns False) unless there are enough players, the join window
        is closed and no spin or winner is in progress.
        """
        if roster_size < MIN_PLAYERS or join_window_open or self.phase is not Phase.IDLE:
            return False
        self.winner_index = -1
        self.winner = None
        self.flash_remaining = 0.0
        self.flash_elapsed = 0.0
        self.angular_velocity = self.rng.uniform(MIN_SPIN_SPEED, MAX_SPIN_SPEED)
        self.friction = self.rng.uniform(MIN_FRICTION, MAX_FRICTION)
        self.phase = Phase.SPINNING
        logger.info("Spin started (v=%.2f rad/s, friction=%.2f)", self.angular_velocity, self.friction)
        return True

    def tick(self, dt: float, participants: Sequence[Participant]):
        """Advances by dt seconds. `participants` is the roster snapshot taken for this frame."""
        if self.phase is Phase.SPINNING:
            self._update_spin(dt, participants)
        elif self.phase is Phase.CELEBRATING:
            self._update_celebration(dt)

    def _update_spin(self, dt, participants):
        n = len(participants)
        if n == 0:
            return
        self.angle = wrap_angle(self.angle + self.angular_velocity * dt)
        self.angular_velocity = max(0.0, self.angular_velocity - self.friction * dt)
        if self.angular_velocity == 0.0:
            self._pick_winner(participants)

    def _pick_winner(self, participants):
        idx = pointer_slice_index(self.angle, len(participants))
        self.phase = Phase.CELEBRATING
        self.winner_index = idx
        self.winner = participants[idx]
        self.flash_remaining = WINNER_FLASH_SEC
        self.flash_elapsed = 0.0
        self.celebration_elapsed = 0.0
        logger.info("Winner: %s (slice %d of %d)", self.winner.name, idx, len(participants))

    def _update_celebration(self, dt):
        self.celebration_elapsed += dt
        if self.flash_remaining > 0.0:
            self.flash_elapsed += dt
            self.flash_remaining = max(0.0, self.flash_remaining - dt)

    def reset(self):
        """Clears the winner and any residual spin. The wheel keeps its resting angle."""
        self.phase = Phase.IDLE
        self.angular_velocity = 0.0
        self.winner_index = -1
        self.winner = None
        self.flash_remaining = 0.0
        self.flash_elapsed = 0.0
        self.celebration_elapsed = 0.0

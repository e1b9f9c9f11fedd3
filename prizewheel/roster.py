# =============================================================================
# --- ROSTER ---
# The live list of wheel entries. The chat worker appends to it while the
# frame loop reads snapshots of it, so every access goes through one lock.
# =============================================================================

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from prizewheel.config import ENTRY_PALETTE

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]


@dataclass(frozen=True)
class Participant:
    name: str
    color: RGBA


class Palette:
    """Fixed colors handed out in rotation. Not random: entry N gets color N mod len."""

    def __init__(self, colors=ENTRY_PALETTE, start_index=0):
        if not colors:
            raise ValueError("palette needs at least one color")
        self.colors = tuple(colors)
        self.index = start_index

    def next_color(self) -> RGBA:
        color = self.colors[self.index % len(self.colors)]
        self.index += 1
        return color


class Roster:
    """Thread-safe, insertion-ordered collection of unique participants."""

    def __init__(self, palette: Optional[Palette] = None, start_index=0):
        self._lock = threading.Lock()
        self._entries: List[Participant] = []
        self._palette = palette or Palette(start_index=start_index)

    def add_if_absent(self, name: str) -> bool:
        """Appends `name` unless an entry with the exact same name exists. Returns True if added."""
        if not name:
            return False
        with self._lock:
            if any(p.name == name for p in self._entries):
                return False
            self._entries.append(Participant(name, self._palette.next_color()))
        logger.info("Added player: %s", name)
        return True

    def clear(self):
        with self._lock:
            self._entries.clear()

    def snapshot(self) -> List[Participant]:
        """Returns a copy; consume it after the lock is released."""
        with self._lock:
            return list(self._entries)

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, name):
        with self._lock:
            return any(p.name == name for p in self._entries)

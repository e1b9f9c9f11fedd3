# =============================================================================
# --- CONFIGURATION ---
# This module contains all primary tunable parameters for the wheel, plus the
# loader for the Twitch credentials file (twitch.cfg).
# =============================================================================

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# --- TWITCH CHAT ---
TWITCH_CONFIG_PATH = "twitch.cfg"        # key=value file with oauth / nick / channel.
TWITCH_HOST        = "irc.chat.twitch.tv"
TWITCH_PORT        = 6667
TWITCH_PING_HOST   = "tmi.twitch.tv"     # Echoed in PONG when a PING carries no payload.
RECV_POLL_SEC      = 0.2                 # Upper bound on how long the chat worker blocks.
CONNECT_TIMEOUT_SEC = 10.0               # Give up on a connect attempt after this long.
RECV_CHUNK_BYTES   = 1024
JOIN_COMMAND       = "!join"

# --- SESSION ---
JOIN_WINDOW_SEC    = 60.0    # Countdown shown while the join window is open.
RESET_HOLD_SEC     = 1.0     # How long a reset gesture must be held to commit.

# --- WHEEL & SPIN PHYSICS ---
MIN_SPIN_SPEED     = 10.0    # rad/s
MAX_SPIN_SPEED     = 13.0    # rad/s
MIN_FRICTION       = 1.8     # rad/s^2, deceleration per second
MAX_FRICTION       = 5.6
MIN_PLAYERS        = 2       # A spin needs at least this many entries.

# --- WINNER ANIMATION ---
WINNER_FLASH_SEC    = 2.0    # How long the winning slice flashes.
WINNER_FLASH_PERIOD = 0.15   # Flash toggles on/off at this interval.

# --- MQTT WIRELESS BUTTON ---
MQTT_HOST        = "localhost"
MQTT_PORT        = 1883
MQTT_KEEPALIVE   = 60
MQTT_SPIN_TOPIC  = "wheel/spin"    # Button publishes "pressed" here ("released" only on hold-capable buttons).
MQTT_STATE_TOPIC = "wheel/state"   # The wheel publishes its state here for the button LEDs.

# --- COLORS ---
# Round-robin palette used for new wheel entries (RGBA).
ENTRY_PALETTE = (
    (0, 100, 0, 255),      # dark green
    (100, 170, 120, 255),  # light green
    (255, 165, 0, 255),    # orange
    (240, 210, 60, 255),   # gold
)

_TWITCH_KEYS = ("oauth", "nick", "channel")


class ConfigError(ValueError):
    """Raised when the chat credentials are incomplete."""


@dataclass
class TwitchConfig:
    oauth: str = ""
    nick: str = ""
    channel: str = ""

    def missing(self):
        """Returns the names of required fields that are empty."""
        return [key for key in _TWITCH_KEYS if not getattr(self, key)]

    def validate(self):
        missing = self.missing()
        if missing:
            raise ConfigError(f"Twitch config missing: {', '.join(missing)}")


def parse_twitch_config(lines) -> TwitchConfig:
    """
    Parses key=value lines into a TwitchConfig.
    Keys are case-insensitive; blank lines, '#' comments, lines without '='
    and unknown keys are skipped. Keys and values are whitespace-trimmed.
    """
    cfg = TwitchConfig()
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip().lower()
        if key in _TWITCH_KEYS:
            setattr(cfg, key, value.strip())
    return cfg


def load_twitch_config(path=TWITCH_CONFIG_PATH) -> TwitchConfig:
    """Reads the config file once at startup. A missing file yields an empty config."""
    if not os.path.exists(path):
        logger.warning("Could not open config file: %s", path)
        return TwitchConfig()
    with open(path, encoding="utf-8") as fh:
        return parse_twitch_config(fh)

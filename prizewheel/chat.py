# =============================================================================
# --- TWITCH CHAT INGESTION ---
# Connects to Twitch IRC on a background thread and turns "!join" chat
# commands into roster entries. The only state this thread touches is the
# Roster (which has its own lock) and the read-only join-window flag.
# =============================================================================

import logging
import selectors
import socket
import threading
from typing import Callable, Optional

from prizewheel.config import (
    CONNECT_TIMEOUT_SEC, ConfigError, JOIN_COMMAND, RECV_CHUNK_BYTES, RECV_POLL_SEC,
    TWITCH_HOST, TWITCH_PING_HOST, TWITCH_PORT, TwitchConfig,
)
from prizewheel.roster import Roster

logger = logging.getLogger(__name__)

LINE_END = b"\r\n"


class ChatConnectionError(ConnectionError):
    """Name resolution, connect or login failed. The session is over; there is no retry."""


class ProtocolError(ValueError):
    """A line that looked like a chat message but could not be parsed."""


# ========= LINE PARSING =========

def _skip_tags(line: str) -> str:
    """Drops a leading IRCv3 '@tags ' segment, if any."""
    if line.startswith("@"):
        space = line.find(" ")
        return line[space + 1:] if space != -1 else ""
    return line


def parse_sender(line: str) -> str:
    """Returns the nick from a ':nick!user@host' prefix, or '' when there is none."""
    rest = _skip_tags(line)
    if rest.startswith(":"):
        bang = rest.find("!", 1)
        if bang != -1:
            return rest[1:bang]
    return ""


def parse_message(line: str) -> Optional[str]:
    """Returns the body of a PRIVMSG line (text after 'PRIVMSG <target> :'), or None."""
    priv = line.find("PRIVMSG")
    if priv == -1:
        return None
    colon = line.find(" :", priv)
    if colon == -1:
        return None
    return line[colon + 2:]


def ping_reply(line: str) -> Optional[str]:
    """
    Builds the PONG for a keep-alive probe, or returns None if `line` is not one.
    The probe may come bare ('PING :x') or behind a source prefix (':srv PING :x').
    """
    rest = _skip_tags(line)
    if rest.startswith(":"):
        space = rest.find(" ")
        rest = rest[space + 1:] if space != -1 else ""
    if not (rest == "PING" or rest.startswith("PING ")):
        return None
    colon = rest.find(":")
    payload = rest[colon + 1:] if colon != -1 else TWITCH_PING_HOST
    return "PONG :" + payload


# ========= CLIENT =========

class ChatIngestionClient:
    """One Twitch IRC session. Call start() once; stop() cancels and joins the worker."""

    def __init__(self, config: TwitchConfig, roster: Roster, join_window: Callable[[], bool],
                 host=TWITCH_HOST, port=TWITCH_PORT, poll_interval=RECV_POLL_SEC):
        self.config = config
        self.roster = roster
        self.join_window = join_window
        self.host = host
        self.port = port
        self.poll_interval = poll_interval

        self.sock: Optional[socket.socket] = None
        self._buffer = b""
        self._cancel = threading.Event()
        self._wake_r, self._wake_w = socket.socketpair()
        self._thread: Optional[threading.Thread] = None

    # --- Connection ---

    def connect(self):
        """Validates the config, opens the socket and sends PASS / NICK / JOIN in that order."""
        self.config.validate()
        try:
            self.sock = socket.create_connection((self.host, self.port), timeout=CONNECT_TIMEOUT_SEC)
            self.sock.settimeout(None)
        except OSError as e:
            raise ChatConnectionError(f"Could not connect to IRC at {self.host}:{self.port}: {e}") from e

        logger.info("Connected, logging in...")
        try:
            self.send_line("PASS " + self.config.oauth)
            self.send_line("NICK " + self.config.nick)
            self.send_line("JOIN " + self.config.channel)
        except OSError as e:
            self.close()
            raise ChatConnectionError(f"Failed to send login messages: {e}") from e

    def send_line(self, line: str):
        self.sock.sendall(line.encode("utf-8") + LINE_END)

    def close(self):
        if self.sock is not None:
            self.sock.close()
            self.sock = None

    # --- Inbound handling ---

    def handle_line(self, line: str):
        """Dispatches one complete IRC line. Raises ProtocolError for malformed chat lines."""
        if not line:
            return

        reply = ping_reply(line)
        if reply is not None:
            self.send_line(reply)
            return

        if "PRIVMSG" not in line:
            return

        message = parse_message(line)
        if message is None:
            raise ProtocolError(f"PRIVMSG without a message body: {line!r}")
        if not message.strip().lower().startswith(JOIN_COMMAND):
            return

        sender = parse_sender(line)
        if not sender:
            raise ProtocolError(f"!join without a sender prefix: {line!r}")
        if self.join_window():
            self.roster.add_if_absent(sender)
        else:
            logger.info("Ignoring !join from %s (wheel closed)", sender)

    def feed(self, data: bytes):
        """Buffers raw bytes and handles every complete CRLF-terminated line."""
        self._buffer += data
        while LINE_END in self._buffer:
            raw, self._buffer = self._buffer.split(LINE_END, 1)
            line = raw.decode("utf-8", errors="replace")
            logger.debug("RAW %s", line)
            try:
                self.handle_line(line)
            except ProtocolError as e:
                logger.debug("Discarding line: %s", e)

    # --- Read loop ---

    def run(self):
        """
        Reads until the remote closes, a socket error occurs, or stop() is called.
        Each wait is bounded by poll_interval; stop() also wakes the selector at once.
        The socket is always closed on exit and never reopened.
        """
        selector = selectors.DefaultSelector()
        selector.register(self.sock, selectors.EVENT_READ, "chat")
        selector.register(self._wake_r, selectors.EVENT_READ, "wake")
        try:
            while not self._cancel.is_set():
                events = selector.select(timeout=self.poll_interval)
                if not events:
                    continue  # timeout: just re-check the cancel flag
                if any(key.data == "wake" for key, _ in events):
                    break
                if not self._read_once():
                    break
        finally:
            selector.close()
            self.close()
            logger.info("Chat thread exiting.")

    def _read_once(self) -> bool:
        try:
            data = self.sock.recv(RECV_CHUNK_BYTES)
        except (socket.timeout, BlockingIOError, InterruptedError):
            return True
        except OSError as e:
            logger.error("recv failed: %s", e)
            return False
        if not data:
            logger.warning("Disconnected.")
            return False
        try:
            self.feed(data)
        except OSError as e:
            logger.error("send failed: %s", e)
            return False
        return True

    # --- Thread lifecycle ---

    def start(self) -> bool:
        """Starts the worker thread. Returns False (chat disabled) when the config is incomplete."""
        try:
            self.config.validate()
        except ConfigError as e:
            logger.warning("%s; skipping chat integration.", e)
            return False
        self._thread = threading.Thread(target=self._worker, name="twitch-chat", daemon=True)
        self._thread.start()
        return True

    def _worker(self):
        try:
            self.connect()
        except ChatConnectionError as e:
            logger.error("%s", e)
            return
        if self._cancel.is_set():
            self.close()
            return
        self.run()

    def stop(self, timeout=None):
        self._cancel.set()
        if self._wake_w.fileno() != -1:
            self._wake_w.send(b"\0")
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Chat thread did not exit within %ss", timeout)
        self._wake_r.close()
        self._wake_w.close()

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

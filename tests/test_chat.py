import socket
import threading
import time

import pytest

from prizewheel import chat
from prizewheel.chat import (
    ChatConnectionError, ChatIngestionClient, ProtocolError,
    parse_message, parse_sender, ping_reply,
)
from prizewheel.config import ConfigError, TwitchConfig
from prizewheel.roster import Roster

JOIN_LINE = "@tag=1 :alice!alice@alice.tmi.twitch.tv PRIVMSG #chan :!join"
CFG = TwitchConfig(oauth="oauth:secret", nick="host", channel="#chan")


class FakeSocket:
    def __init__(self, fail_after=None):
        self.sent = []
        self.fail_after = fail_after
        self.closed = False
        self.timeouts = []

    def settimeout(self, value):
        self.timeouts.append(value)

    def sendall(self, data):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise OSError("broken pipe")
        self.sent.append(data)

    def close(self):
        self.closed = True


@pytest.fixture
def window():
    return {"open": True}


@pytest.fixture
def client(window):
    c = ChatIngestionClient(CFG, Roster(), lambda: window["open"])
    c.sent = []
    c.send_line = c.sent.append
    yield c
    c.stop()


# ========= PARSING =========

def test_parse_sender_with_and_without_tags():
    assert parse_sender(JOIN_LINE) == "alice"
    assert parse_sender(":bob!bob@bob.tmi.twitch.tv PRIVMSG #chan :hi") == "bob"
    assert parse_sender("@only-tags-no-space") == ""
    assert parse_sender("PRIVMSG #chan :!join") == ""


def test_parse_message_takes_text_after_space_colon():
    assert parse_message(JOIN_LINE) == "!join"
    assert parse_message(":a!a@a PRIVMSG #chan :hello :) there") == "hello :) there"
    assert parse_message(":a!a@a PRIVMSG #chan") is None
    assert parse_message(":tmi.twitch.tv 001 host :Welcome") is None


def test_ping_reply_echoes_payload():
    assert ping_reply(":tmi.twitch.tv PING :abc123") == "PONG :abc123"
    assert ping_reply("PING :tmi.twitch.tv") == "PONG :tmi.twitch.tv"


def test_ping_reply_defaults_host_without_payload():
    assert ping_reply("PING") == "PONG :tmi.twitch.tv"


def test_ping_reply_ignores_other_lines():
    assert ping_reply(JOIN_LINE) is None
    assert ping_reply(":a!a@a PRIVMSG #chan :PING :x") is None
    assert ping_reply("PINGER :x") is None


# ========= DISPATCH =========

def test_prefixed_ping_produces_exact_pong(client):
    client.handle_line(":tmi.twitch.tv PING :abc123")
    assert client.sent == ["PONG :abc123"]


def test_join_with_window_open_adds_sender_once(client):
    client.handle_line(JOIN_LINE)
    client.handle_line(JOIN_LINE)
    assert [p.name for p in client.roster.snapshot()] == ["alice"]


def test_join_with_window_closed_is_ignored(client, window):
    window["open"] = False
    client.handle_line(JOIN_LINE)
    assert client.roster.snapshot() == []


def test_join_is_case_insensitive_prefix(client):
    client.handle_line(":bob!bob@bob PRIVMSG #chan :!JOIN please")
    assert "bob" in client.roster


def test_other_messages_ignored(client):
    client.handle_line(":bob!bob@bob PRIVMSG #chan :hello !join")
    client.handle_line(":tmi.twitch.tv 001 host :Welcome, GLHF!")
    assert len(client.roster) == 0
    assert client.sent == []


def test_malformed_privmsg_raises_protocol_error(client):
    with pytest.raises(ProtocolError):
        client.handle_line(":bob!bob@bob PRIVMSG #chan")
    with pytest.raises(ProtocolError):
        client.handle_line("PRIVMSG #chan :!join")


def test_feed_buffers_partial_lines_and_discards_malformed(client):
    client.feed(b"PING :a\r\n:bob!bob@bob PRIVMSG #chan\r\n:alice!alice@alice PRIVMSG #chan :!jo")
    assert client.sent == ["PONG :a"]
    assert len(client.roster) == 0
    client.feed(b"in\r\n")
    assert "alice" in client.roster


def test_feed_survives_invalid_utf8(client):
    client.feed(b":\xffbob!b@b PRIVMSG #chan :!join\r\n")
    assert len(client.roster) == 1


# ========= CONNECTION =========

def test_connect_with_missing_config_makes_no_attempt(monkeypatch):
    def boom(*args, **kwargs):
        raise AssertionError("should not connect")
    monkeypatch.setattr(chat.socket, "create_connection", boom)
    c = ChatIngestionClient(TwitchConfig(nick="host"), Roster(), lambda: True)
    with pytest.raises(ConfigError):
        c.connect()
    assert not c.start()
    assert not c.running
    c.stop()


def test_connect_sends_handshake_in_order(monkeypatch):
    fake = FakeSocket()
    monkeypatch.setattr(chat.socket, "create_connection", lambda addr, timeout=None: fake)
    c = ChatIngestionClient(CFG, Roster(), lambda: True)
    c.connect()
    assert fake.sent == [b"PASS oauth:secret\r\n", b"NICK host\r\n", b"JOIN #chan\r\n"]
    c.close()
    c.stop()


def test_connect_is_bounded_then_socket_blocks(monkeypatch):
    fake = FakeSocket()
    seen = {}

    def connect(addr, timeout=None):
        seen["addr"] = addr
        seen["timeout"] = timeout
        return fake
    monkeypatch.setattr(chat.socket, "create_connection", connect)
    c = ChatIngestionClient(CFG, Roster(), lambda: True)
    c.connect()
    assert seen["addr"] == ("irc.chat.twitch.tv", 6667)
    assert seen["timeout"] == chat.CONNECT_TIMEOUT_SEC
    assert fake.timeouts == [None]
    c.close()
    c.stop()


def test_connect_failure_raises_connection_error(monkeypatch):
    def refuse(addr, timeout=None):
        raise OSError("connection refused")
    monkeypatch.setattr(chat.socket, "create_connection", refuse)
    c = ChatIngestionClient(CFG, Roster(), lambda: True)
    with pytest.raises(ChatConnectionError):
        c.connect()
    c.stop()


def test_failed_handshake_send_closes_socket(monkeypatch):
    fake = FakeSocket(fail_after=1)
    monkeypatch.setattr(chat.socket, "create_connection", lambda addr, timeout=None: fake)
    c = ChatIngestionClient(CFG, Roster(), lambda: True)
    with pytest.raises(ChatConnectionError):
        c.connect()
    assert fake.closed
    assert c.sock is None
    c.stop()


def test_worker_exits_without_retry_on_connect_failure(monkeypatch):
    attempts = []

    def refuse(addr, timeout=None):
        attempts.append(addr)
        raise OSError("unreachable")
    monkeypatch.setattr(chat.socket, "create_connection", refuse)
    c = ChatIngestionClient(CFG, Roster(), lambda: True)
    assert c.start()
    c._thread.join(2.0)
    assert not c.running
    assert len(attempts) == 1
    c.stop()


# ========= READ LOOP =========

def test_run_processes_lines_until_remote_closes():
    local, remote = socket.socketpair()
    c = ChatIngestionClient(CFG, Roster(), lambda: True)
    c.sock = local
    remote.sendall(b"PING :tmi.twitch.tv\r\n" + JOIN_LINE.encode() + b"\r\n")
    remote.shutdown(socket.SHUT_WR)

    c.run()

    assert c.sock is None
    assert "alice" in c.roster
    assert remote.recv(1024) == b"PONG :tmi.twitch.tv\r\n"
    remote.close()
    c.stop()


def test_stop_cancels_idle_read_loop_promptly():
    local, remote = socket.socketpair()
    c = ChatIngestionClient(CFG, Roster(), lambda: True)
    c.sock = local
    c._thread = threading.Thread(target=c.run)
    c._thread.start()
    time.sleep(0.05)

    started = time.monotonic()
    c.stop(timeout=2.0)

    assert not c.running
    assert time.monotonic() - started < 0.5
    assert c.sock is None
    remote.close()


def test_stop_releases_wake_pair_when_connect_hangs(monkeypatch):
    fake = FakeSocket()
    release = threading.Event()

    def slow_connect(addr, timeout=None):
        release.wait(2.0)
        return fake
    monkeypatch.setattr(chat.socket, "create_connection", slow_connect)
    c = ChatIngestionClient(CFG, Roster(), lambda: True)
    assert c.start()

    c.stop(timeout=0.05)
    assert c.running
    assert c._wake_r.fileno() == -1
    assert c._wake_w.fileno() == -1

    release.set()
    c._thread.join(2.0)
    assert not c.running
    assert fake.closed
    assert fake.sent == [b"PASS oauth:secret\r\n", b"NICK host\r\n", b"JOIN #chan\r\n"]

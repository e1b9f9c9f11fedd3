import random
from types import SimpleNamespace

from prizewheel.button import ButtonBridge
from prizewheel.roster import Roster
from prizewheel.session import InputSource, SessionController
from prizewheel.wheel import Phase, WheelSimulation


class FakeMQTTClient:
    def __init__(self, connected=True, refuse=False):
        self.connected = connected
        self.refuse = refuse
        self.subscribed = []
        self.published = []
        self.loop_running = False

    def connect(self, host, port, keepalive):
        if self.refuse:
            raise ConnectionRefusedError("no broker")

    def loop_start(self):
        self.loop_running = True

    def loop_stop(self):
        self.loop_running = False

    def disconnect(self):
        self.connected = False

    def subscribe(self, topic):
        self.subscribed.append(topic)

    def is_connected(self):
        return self.connected

    def publish(self, topic, payload=None, qos=0, retain=False):
        self.published.append((topic, payload))


def message(payload, topic="wheel/spin"):
    return SimpleNamespace(topic=topic, payload=payload)


def controller_with_players():
    roster = Roster()
    roster.add_if_absent("alice")
    roster.add_if_absent("bob")
    return SessionController(roster, wheel=WheelSimulation(random.Random(1)))


def test_start_subscribes_on_connect():
    client = FakeMQTTClient()
    bridge = ButtonBridge(client=client)
    assert bridge.start()
    assert client.loop_running
    bridge._on_connect(client, None, None, 0, None)
    assert client.subscribed == ["wheel/spin"]
    bridge.stop()
    assert not client.loop_running


def test_unreachable_broker_leaves_bridge_disabled():
    client = FakeMQTTClient(refuse=True)
    bridge = ButtonBridge(client=client)
    assert not bridge.start()
    bridge.publish_state("spinning")
    assert client.published == []


def test_press_is_queued_until_drained():
    bridge = ButtonBridge(client=FakeMQTTClient())
    controller = controller_with_players()
    bridge._on_message(None, None, message(b"pressed"))
    assert controller.wheel.phase is Phase.IDLE
    bridge.drain(controller)
    assert controller.wheel.phase is Phase.SPINNING


def test_release_ends_button_hold():
    bridge = ButtonBridge(client=FakeMQTTClient())
    controller = controller_with_players()
    bridge._on_message(None, None, message(b"released"))
    bridge.drain(controller)
    controller.wheel.winner_index = 0
    bridge._on_message(None, None, message(b"pressed"))
    bridge.drain(controller)
    assert controller.gesture.source is InputSource.BUTTON
    bridge._on_message(None, None, message(b"released"))
    bridge.drain(controller)
    assert not controller.gesture.active


def test_press_without_release_never_clears_roster():
    bridge = ButtonBridge(client=FakeMQTTClient())
    controller = controller_with_players()
    bridge._on_message(None, None, message(b"pressed"))
    bridge.drain(controller)
    assert controller.wheel.phase is Phase.SPINNING
    for _ in range(10000):
        if controller.tick(1 / 60).phase is Phase.CELEBRATING:
            break
    assert controller.wheel.winner_showing

    bridge._on_message(None, None, message(b"pressed"))
    bridge.drain(controller)
    assert not controller.gesture.active
    for _ in range(5):
        controller.tick(0.5)
    assert len(controller.roster) == 2
    assert controller.wheel.winner_showing


def test_press_without_release_ignored_while_join_window_open():
    bridge = ButtonBridge(client=FakeMQTTClient())
    controller = controller_with_players()
    controller.toggle_join_window()
    bridge._on_message(None, None, message(b"pressed"))
    bridge.drain(controller)
    assert controller.wheel.phase is Phase.IDLE


def test_start_tolerates_non_socket_errors():
    client = FakeMQTTClient()

    def bad_host(host, port, keepalive):
        raise ValueError("Invalid host.")

    client.connect = bad_host
    bridge = ButtonBridge(client=client)
    assert not bridge.start()
    assert not bridge.started
    assert not client.loop_running


def test_other_topics_and_payloads_ignored():
    bridge = ButtonBridge(client=FakeMQTTClient())
    bridge._on_message(None, None, message(b"pressed", topic="wheel/other"))
    bridge._on_message(None, None, message(b"wiggle"))
    assert bridge.events.empty()


def test_publish_state_when_connected():
    client = FakeMQTTClient()
    bridge = ButtonBridge(client=client)
    bridge.start()
    bridge.publish_state("flash_white")
    assert client.published == [("wheel/state", "flash_white")]

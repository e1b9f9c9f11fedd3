# =============================================================================
# --- MQTT WIRELESS BUTTON ---
# Bridges a wireless arcade button (publishing on 'wheel/spin') into the
# session, and publishes the wheel state on 'wheel/state' so the button's
# LED ring can follow along. paho runs its network loop on its own thread,
# so incoming presses are queued here and applied by the frame loop.
#
# The stock button firmware only ever publishes "pressed", so a press just
# requests a spin. A button that has been heard sending "released" also
# gets the hold-to-reset gesture.
# =============================================================================

import logging
import queue

import paho.mqtt.client as mqtt

from prizewheel.config import (
    MQTT_HOST, MQTT_KEEPALIVE, MQTT_PORT, MQTT_SPIN_TOPIC, MQTT_STATE_TOPIC,
)
from prizewheel.session import InputSource, SessionController

logger = logging.getLogger(__name__)

PRESSED = "pressed"
RELEASED = "released"


class ButtonBridge:
    """Optional: if the broker is unreachable, the wheel keeps working with keyboard and mouse."""

    def __init__(self, host=MQTT_HOST, port=MQTT_PORT, client=None):
        self.host = host
        self.port = port
        self.events = queue.Queue()
        self.client = client or mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message
        self.started = False
        self.saw_release = False

    def start(self) -> bool:
        """Connects to the broker and starts paho's background loop."""
        try:
            self.client.connect(self.host, self.port, MQTT_KEEPALIVE)
        except Exception as e:
            logger.warning("MQTT connection failed: %s. Keyboard and mouse controls still work.", e)
            return False
        self.client.loop_start()
        self.started = True
        return True

    def stop(self):
        if self.started:
            self.client.loop_stop()
            self.client.disconnect()
            self.started = False

    def _on_connect(self, client, userdata, flags, rc, properties):
        if rc == 0:
            logger.info("Connected to MQTT broker.")
            client.subscribe(MQTT_SPIN_TOPIC)
        else:
            logger.error("Failed to connect to MQTT broker, return code %s", rc)

    def _on_message(self, client, userdata, msg):
        """Runs on paho's thread: only enqueue."""
        if msg.topic != MQTT_SPIN_TOPIC:
            return
        payload = msg.payload.decode("utf-8", errors="replace").strip().lower()
        if payload in (PRESSED, RELEASED):
            self.events.put(payload)
        else:
            logger.debug("Ignoring button payload %r", payload)

    def drain(self, controller: SessionController):
        """Applies queued presses to the controller. Call from the frame loop."""
        while True:
            try:
                payload = self.events.get_nowait()
            except queue.Empty:
                return
            if payload == RELEASED:
                self.saw_release = True
                controller.primary_up(InputSource.BUTTON)
            elif self.saw_release:
                controller.primary_down(InputSource.BUTTON)
            else:
                controller.request_spin()

    def publish_state(self, state: str):
        """Publishes the wheel state (e.g. 'spinning') for the button LEDs to react to."""
        if self.started and self.client.is_connected():
            self.client.publish(MQTT_STATE_TOPIC, payload=state, qos=0, retain=False)
            logger.debug("Published state: %s", state)

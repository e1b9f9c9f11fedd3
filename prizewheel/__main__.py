# ========= ENTRY POINT =========
# Wires the roster, chat worker, MQTT button and pygame host together.

import argparse
import logging
import sys

from prizewheel.config import JOIN_WINDOW_SEC, MQTT_HOST, TWITCH_CONFIG_PATH, load_twitch_config
from prizewheel.roster import Roster
from prizewheel.session import JoinWindow, SessionController


def build_parser():
    parser = argparse.ArgumentParser(prog="prizewheel", description="Twitch !join prize wheel")
    parser.add_argument("--config", default=TWITCH_CONFIG_PATH, help="twitch.cfg with oauth / nick / channel")
    parser.add_argument("--join-seconds", type=float, default=JOIN_WINDOW_SEC, help="join window countdown")
    parser.add_argument("--fullscreen", action="store_true")
    parser.add_argument("--mqtt-host", default=MQTT_HOST, help="broker for the wireless spin button")
    parser.add_argument("--no-mqtt", action="store_true", help="don't try to reach the button broker")
    parser.add_argument("-v", "--verbose", action="store_true", help="log raw chat lines")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
    )

    # Imported here so --help works without a display or broker libraries loaded.
    from prizewheel.button import ButtonBridge
    from prizewheel.chat import ChatIngestionClient
    from prizewheel.game import Game

    cfg = load_twitch_config(args.config)
    roster = Roster()

    button = None
    if not args.no_mqtt:
        button = ButtonBridge(host=args.mqtt_host)
        if not button.start():
            button = None

    controller = SessionController(
        roster,
        join_window=JoinWindow(args.join_seconds),
        owner=cfg.nick,
        on_state=button.publish_state if button else None,
    )

    chat = ChatIngestionClient(cfg, roster, controller.is_join_open)
    chat.start()

    try:
        Game(controller, button=button, fullscreen=args.fullscreen).run()
    finally:
        chat.stop(timeout=2.0)
        if button is not None:
            button.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())

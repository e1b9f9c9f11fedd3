"""Twitch-driven prize wheel: chat !join ingestion, roster, spin physics and session control."""

__version__ = "1.0.0"

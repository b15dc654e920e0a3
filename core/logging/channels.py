"""
Logging channel definitions for the gateway.
Channels are bound onto every event so downstream handlers can route on them.
"""

from enum import Enum


class LogChannel(str, Enum):
    """Logging channels for different components."""

    APPLICATION = "application"  # General application logs
    TRADING = "trading"          # Broker calls and command dispatch
    API = "api"                  # HTTP requests/responses
    AUDIT = "audit"              # Session lifecycle trail
    ERROR = "error"              # Error logs


# Component to channel mapping
COMPONENT_CHANNEL_MAP = {
    "gateway": LogChannel.TRADING,
    "broker": LogChannel.TRADING,
    "tools": LogChannel.TRADING,
    "session": LogChannel.AUDIT,
    "api": LogChannel.API,
    "cli": LogChannel.APPLICATION,
}


def get_channel_for_component(component: str) -> LogChannel:
    """Get the appropriate logging channel for a component."""
    return COMPONENT_CHANNEL_MAP.get(component, LogChannel.APPLICATION)

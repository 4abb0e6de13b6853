"""
Client configuration.

Options come from a bot config dict or from the environment (.env supported).
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_ADDR = "127.0.0.1:8080"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    """Invalid client configuration."""
    pass


def parse_addr(addr: str) -> tuple[str, int]:
    """
    Split a host:port bind address.

    An empty host (":8080") binds all interfaces.
    """
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ConfigError(f"Webhook address must be host:port, got '{addr}'")

    try:
        port_number = int(port)
    except ValueError:
        raise ConfigError(f"Invalid port in webhook address '{addr}'")

    if not 0 <= port_number <= 65535:
        raise ConfigError(f"Port out of range in webhook address '{addr}'")

    host = host.strip("[]") or "0.0.0.0"
    return host, port_number


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


@dataclass
class ClientOptions:
    """Options recognized by the Slack client."""
    webhook_addr: str = DEFAULT_WEBHOOK_ADDR
    enable_webhook: bool = False
    debug: bool = False

    def __post_init__(self):
        parse_addr(self.webhook_addr)

    @property
    def webhook_host(self) -> str:
        return parse_addr(self.webhook_addr)[0]

    @property
    def webhook_port(self) -> int:
        return parse_addr(self.webhook_addr)[1]

    @classmethod
    def from_dict(cls, data: dict) -> "ClientOptions":
        """Create from a bot config dict, ignoring unrelated keys."""
        return cls(
            webhook_addr=data.get("webhook_addr", DEFAULT_WEBHOOK_ADDR),
            enable_webhook=_as_bool(data.get("enable_webhook", False)),
            debug=_as_bool(data.get("debug", False)),
        )

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "ClientOptions":
        """
        Read SLACK_WEBHOOK_ADDR, SLACK_ENABLE_WEBHOOK and SLACK_DEBUG.

        Args:
            env_file: Optional .env file loaded before reading the environment
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        return cls(
            webhook_addr=os.getenv("SLACK_WEBHOOK_ADDR", DEFAULT_WEBHOOK_ADDR),
            enable_webhook=_as_bool(os.getenv("SLACK_ENABLE_WEBHOOK", "")),
            debug=_as_bool(os.getenv("SLACK_DEBUG", "")),
        )

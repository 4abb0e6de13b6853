"""
Slack transport for the dispatch runtime.
"""

from .callback import (
    AttachmentAction,
    AttachmentActionCallback,
    CallbackDecodeError,
    Team,
    decode_callback,
)
from .config import ClientOptions, ConfigError, parse_addr
from .webhook import ListenerState, WebhookError, WebhookListener
from .bot import SlackBot
from .client import ClientError, SlackClient

__all__ = [
    'AttachmentAction',
    'AttachmentActionCallback',
    'CallbackDecodeError',
    'Team',
    'decode_callback',
    'ClientOptions',
    'ConfigError',
    'parse_addr',
    'ListenerState',
    'WebhookError',
    'WebhookListener',
    'SlackBot',
    'ClientError',
    'SlackClient',
]

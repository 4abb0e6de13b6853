"""
Interactive message callbacks.

Slack posts button and menu clicks as `payload=<json>` form data; a raw JSON
body is accepted as well.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import parse_qs

from ..models import Channel, User

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class CallbackDecodeError(ValueError):
    """Payload is not a valid interactive callback."""
    pass


@dataclass(frozen=True)
class Team:
    """The workspace a callback originates from."""
    id: str
    domain: str = ""


@dataclass
class AttachmentAction:
    """A single button or menu action inside a callback."""
    name: str = ""
    value: str = ""
    type: str = ""
    selected_options: list[dict] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "AttachmentAction":
        return cls(
            name=_str(data, "name"),
            value=_str(data, "value"),
            type=_str(data, "type"),
            selected_options=_list(data, "selected_options"),
        )


@dataclass
class AttachmentActionCallback:
    """Decoded interactive callback."""
    callback_id: str
    team: Team
    channel: Channel
    user: User
    actions: list[AttachmentAction] = field(default_factory=list)
    action_ts: str = ""
    message_ts: str = ""
    attachment_id: str = ""
    token: str = ""
    response_url: str = ""
    original_message: Optional[dict] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Any) -> "AttachmentActionCallback":
        """
        Build a callback from decoded JSON.

        Raises:
            CallbackDecodeError: If the structure or field types are wrong
        """
        if not isinstance(data, dict):
            raise CallbackDecodeError("Callback payload must be a JSON object")

        team = _dict(data, "team")
        channel = _dict(data, "channel")
        user = _dict(data, "user")
        original = data.get("original_message")
        if original is not None and not isinstance(original, dict):
            raise CallbackDecodeError("'original_message' must be an object")

        actions = []
        for item in _list(data, "actions"):
            if not isinstance(item, dict):
                raise CallbackDecodeError("'actions' must contain objects")
            actions.append(AttachmentAction.from_dict(item))

        return cls(
            callback_id=_str(data, "callback_id"),
            team=Team(id=_str(team, "id"), domain=_str(team, "domain")),
            channel=Channel(id=_str(channel, "id"), name=_str(channel, "name")),
            user=User(id=_str(user, "id"), name=_str(user, "name")),
            actions=actions,
            action_ts=_str(data, "action_ts"),
            message_ts=_str(data, "message_ts"),
            attachment_id=_str(data, "attachment_id"),
            token=_str(data, "token"),
            response_url=_str(data, "response_url"),
            original_message=original,
            raw=data,
        )


def decode_callback(body: bytes, content_type: str = "") -> AttachmentActionCallback:
    """
    Decode a webhook request body.

    Args:
        body: Raw request body
        content_type: Value of the Content-Type header

    Returns:
        AttachmentActionCallback

    Raises:
        CallbackDecodeError: If the body cannot be decoded
    """
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CallbackDecodeError(f"Body is not UTF-8: {e}")

    if content_type.split(";")[0].strip().lower() == FORM_CONTENT_TYPE:
        fields = parse_qs(text)
        if "payload" not in fields:
            raise CallbackDecodeError("Form body has no 'payload' field")
        text = fields["payload"][0]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CallbackDecodeError(f"Failed to parse JSON: {e}")

    return AttachmentActionCallback.from_dict(data)


def _str(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise CallbackDecodeError(f"'{key}' must be a string")
    return value


def _dict(data: dict, key: str) -> dict:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise CallbackDecodeError(f"'{key}' must be an object")
    return value


def _list(data: dict, key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise CallbackDecodeError(f"'{key}' must be a list")
    return value

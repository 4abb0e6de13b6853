"""
Data models and capability protocols for the dispatch runtime.

Controllers, bots and action handlers are plain objects that only need to
provide the methods declared here; nothing has to inherit from these classes.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class Channel:
    """A conversation the bot takes part in."""
    id: str
    name: str = ""
    is_dm: bool = False


@dataclass(frozen=True)
class User:
    """A Slack user."""
    id: str
    name: str = ""


@dataclass(frozen=True)
class Message:
    """An inbound chat message, treated as immutable input to matching."""
    text: str
    channel: Channel
    user: User
    ts: str = ""
    thread_ts: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_event(cls, event: dict) -> "Message":
        """Create from a Slack `message` event dict."""
        channel_type = event.get("channel_type", "")
        return cls(
            text=event.get("text", "") or "",
            channel=Channel(
                id=event.get("channel", ""),
                is_dm=channel_type == "im",
            ),
            user=User(id=event.get("user", "")),
            ts=event.get("ts", ""),
            thread_ts=event.get("thread_ts"),
            raw=event,
        )


@runtime_checkable
class Bot(Protocol):
    """
    A running bot instance, as seen by the supervisor.

    Each bot owns its own connection to Slack and its own receive loop.
    """

    def stop(self) -> None:
        ...

    def handle_action(self, channel_id: str, action: Any) -> None:
        ...

    def handle_job(self, job: "Job") -> None:
        ...


@runtime_checkable
class RunnableBot(Protocol):
    """Bots that need to be started when the client runs."""

    def start(self) -> None:
        ...


@runtime_checkable
class Controller(Protocol):
    """
    Handles the messages it claims.

    can_handle() must be a cheap predicate; the first registered controller
    that returns True receives the message.
    """

    def can_handle(self, message: Message) -> bool:
        ...

    def handle(self, bot: Bot, message: Message) -> None:
        ...


@runtime_checkable
class IntroController(Protocol):
    """Optional capability: greet a channel the bot has just joined."""

    def handle_intro(self, bot: Bot, channel: Channel) -> None:
        ...


ActionHandler = Callable[[Bot, Any], None]
Job = Callable[[Bot], None]


@dataclass
class ScheduledJob:
    """A job forwarded to every bot once per interval while the client runs."""
    interval: timedelta
    job: Job

    @property
    def seconds(self) -> float:
        return self.interval.total_seconds()

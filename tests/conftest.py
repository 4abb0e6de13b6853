"""Shared fixtures and fakes."""

import json
import threading

import pytest

from relay.models import Message


TEST_CALLBACK = {
    "actions": [
        {"name": "recommend", "type": "button", "value": "yes"}
    ],
    "callback_id": "test_callback",
    "team": {"id": "bot", "domain": "example"},
    "channel": {"id": "channel", "name": "general"},
    "user": {"id": "U123", "name": "alice"},
    "action_ts": "1458170917.164398",
    "message_ts": "1458170866.000004",
    "attachment_id": "1",
    "token": "xAB3yVzGS4BQ3O9FACTa8Ho4",
    "original_message": {"text": "Do you recommend it?"},
    "response_url": "https://hooks.slack.com/actions/T47563693/6204672533/x7ZLaiVMoECAW50Gw1ZYAXEM",
}


class HelloController:
    """Handles "hello" and counts intro calls."""

    def __init__(self):
        self.lock = threading.Lock()
        self.messages = []
        self.intro_calls = 0

    def can_handle(self, message):
        return message.text == "hello"

    def handle(self, bot, message):
        with self.lock:
            self.messages.append(message)

    def handle_intro(self, bot, channel):
        with self.lock:
            self.intro_calls += 1


class MockBot:
    """Records every call the supervisor makes."""

    def __init__(self):
        self.lock = threading.Lock()
        self.stop_calls = 0
        self.actions = []
        self.channels = []
        self.jobs = []
        self.action_received = threading.Event()
        self.job_received = threading.Event()

    @property
    def stopped(self):
        return self.stop_calls > 0

    def stop(self):
        with self.lock:
            self.stop_calls += 1

    def handle_action(self, channel_id, action):
        with self.lock:
            self.channels.append(channel_id)
            self.actions.append(action)
        self.action_received.set()

    def handle_job(self, job):
        with self.lock:
            self.jobs.append(job)
        self.job_received.set()


def make_message(text, channel="C1", user="U1"):
    return Message.from_event({"text": text, "channel": channel, "user": user})


@pytest.fixture
def callback_body():
    return json.dumps(TEST_CALLBACK).encode("utf-8")


@pytest.fixture
def hello_controller():
    return HelloController()


@pytest.fixture
def mock_bot():
    return MockBot()

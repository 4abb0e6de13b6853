"""Tests for the webhook listener lifecycle and request handling."""

import json
import socket
import threading
from urllib.parse import urlencode

import pytest
import requests
from fastapi.testclient import TestClient

from relay.slack.webhook import ListenerState, WebhookError, WebhookListener

from conftest import TEST_CALLBACK


class Recorder:
    def __init__(self, error=None):
        self.lock = threading.Lock()
        self.callbacks = []
        self.error = error

    def __call__(self, callback):
        with self.lock:
            self.callbacks.append(callback)
        if self.error:
            raise self.error


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def running_listener(recorder):
    """A listener serving on a free port in a background thread."""
    listener = WebhookListener("127.0.0.1:0", recorder)
    thread = threading.Thread(target=listener.serve, daemon=True)
    thread.start()
    assert listener.wait_listening(timeout=5)

    yield listener

    listener.shutdown()
    thread.join(timeout=5)


def url_for(listener, path=""):
    host, port = listener.address
    return f"http://{host}:{port}/{path}"


class TestRequests:

    def test_valid_callback_dispatched(self, running_listener, recorder, callback_body):
        resp = requests.post(
            url_for(running_listener),
            data=callback_body,
            headers={"Content-Type": "application/json"},
            timeout=5,
        )
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
        assert len(recorder.callbacks) == 1
        assert recorder.callbacks[0].callback_id == "test_callback"
        assert recorder.callbacks[0].channel.id == "channel"
        assert recorder.callbacks[0].team.id == "bot"

    def test_any_path_accepted(self, running_listener, recorder, callback_body):
        resp = requests.post(
            url_for(running_listener, "slack/actions"),
            data=callback_body,
            timeout=5,
        )
        assert resp.status_code == 200
        assert len(recorder.callbacks) == 1

    def test_form_encoded_payload(self, running_listener, recorder):
        resp = requests.post(
            url_for(running_listener),
            data={"payload": json.dumps(TEST_CALLBACK)},
            timeout=5,
        )
        assert resp.status_code == 200
        assert recorder.callbacks[0].callback_id == "test_callback"

    def test_malformed_payload_rejected(self, running_listener, recorder):
        resp = requests.post(
            url_for(running_listener),
            data=b"{not json",
            headers={"Content-Type": "application/json"},
            timeout=5,
        )
        assert resp.status_code == 400
        assert recorder.callbacks == []

    def test_form_without_payload_rejected(self, running_listener, recorder):
        resp = requests.post(
            url_for(running_listener),
            data=urlencode({"foo": "bar"}),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=5,
        )
        assert resp.status_code == 400
        assert recorder.callbacks == []

    def test_dispatch_failure_still_acknowledged(self, callback_body, caplog):
        listener = WebhookListener("127.0.0.1:0", Recorder(error=RuntimeError("boom")))
        thread = threading.Thread(target=listener.serve, daemon=True)
        thread.start()
        try:
            assert listener.wait_listening(timeout=5)
            resp = requests.post(url_for(listener), data=callback_body, timeout=5)
            assert resp.status_code == 200
            assert resp.json() == {"status": "ok"}
        finally:
            listener.shutdown()
            thread.join(timeout=5)
        assert "Callback dispatch failure for test_callback" in caplog.text

    def test_healthz(self, running_listener):
        resp = requests.get(url_for(running_listener, "healthz"), timeout=5)
        assert resp.status_code == 200


class TestLifecycle:

    def test_initial_state(self, recorder):
        listener = WebhookListener("127.0.0.1:0", recorder)
        assert listener.state is ListenerState.STOPPED
        assert listener.address is None

    def test_listening_state(self, running_listener):
        assert running_listener.state is ListenerState.LISTENING
        assert running_listener.address[1] != 0

    def test_shutdown_refuses_connections(self, recorder, callback_body):
        listener = WebhookListener("127.0.0.1:0", recorder)
        thread = threading.Thread(target=listener.serve, daemon=True)
        thread.start()
        assert listener.wait_listening(timeout=5)
        url = url_for(listener)

        resp = requests.post(url, data=callback_body, timeout=5)
        assert resp.status_code == 200

        listener.shutdown()
        thread.join(timeout=5)
        assert not thread.is_alive()
        assert listener.wait_stopped(timeout=0)
        assert listener.state is ListenerState.STOPPED

        with pytest.raises(requests.exceptions.ConnectionError):
            requests.post(url, data=callback_body, timeout=0.5)
        assert len(recorder.callbacks) == 1

    def test_second_shutdown_is_harmless(self, recorder):
        listener = WebhookListener("127.0.0.1:0", recorder)
        thread = threading.Thread(target=listener.serve, daemon=True)
        thread.start()
        assert listener.wait_listening(timeout=5)

        listener.shutdown()
        thread.join(timeout=5)
        listener.shutdown()
        assert listener.state is ListenerState.STOPPED

    def test_shutdown_before_serve(self, recorder):
        listener = WebhookListener("127.0.0.1:0", recorder)
        listener.shutdown()

        listener.serve()
        assert listener.state is ListenerState.STOPPED
        assert listener.wait_stopped(timeout=0)
        assert listener.address is None

    def test_serve_only_once(self, running_listener):
        with pytest.raises(WebhookError):
            running_listener.serve()

    def test_bind_failure(self, recorder):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as taken:
            taken.bind(("127.0.0.1", 0))
            taken.listen()
            port = taken.getsockname()[1]

            listener = WebhookListener(f"127.0.0.1:{port}", recorder)
            with pytest.raises(WebhookError):
                listener.serve()
            assert listener.state is ListenerState.STOPPED
            assert listener.wait_stopped(timeout=0)


class TestShuttingDown:

    def test_request_after_shutdown_rejected(self, recorder, callback_body):
        listener = WebhookListener("127.0.0.1:0", recorder)
        listener.shutdown()

        resp = TestClient(listener.app).post("/", content=callback_body)
        assert resp.status_code == 503
        assert recorder.callbacks == []

    def test_shutdown_during_dispatch(self, callback_body):
        entered = threading.Event()
        release = threading.Event()
        dispatched = []

        def slow_dispatch(callback):
            dispatched.append(callback)
            entered.set()
            release.wait(timeout=5)

        listener = WebhookListener("127.0.0.1:0", slow_dispatch)
        client = TestClient(listener.app)
        responses = []
        in_flight = threading.Thread(
            target=lambda: responses.append(client.post("/", content=callback_body)),
            daemon=True,
        )
        in_flight.start()
        try:
            assert entered.wait(timeout=5)
            listener.shutdown()

            resp = client.post("/", content=callback_body)
            assert resp.status_code == 503
            assert len(dispatched) == 1
        finally:
            release.set()
            in_flight.join(timeout=5)

        assert not in_flight.is_alive()
        assert responses[0].status_code == 200

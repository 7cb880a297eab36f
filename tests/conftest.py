"""
Pytest configuration and shared fixtures.

Contains fake Pub/Sub messages and transport, sample log entries and
pipeline builders shared by all test modules.
"""

import json
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest
import structlog
from prometheus_client import CollectorRegistry

from kubetail.core.budget import ProcessingBudget
from kubetail.core.controller import DeliveryController
from kubetail.core.exceptions import TransportError
from kubetail.core.filtering import SelectionCriteria
from kubetail.core.metrics import MetricsCollector


@pytest.fixture(autouse=True, scope="session")
def route_structlog_to_stdlib() -> None:
    """Send log events through stdlib logging so they never land on stdout."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.KeyValueRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class FakeMessage:
    """Stand-in for a google.cloud.pubsub_v1 subscriber Message."""

    def __init__(self, data: bytes, message_id: str = "1") -> None:
        self.data = data
        self.message_id = message_id
        self.acked = False
        self.nacked = False

    def ack(self) -> None:
        self.acked = True

    def nack(self) -> None:
        self.nacked = True


class FakeTransport:
    """
    In-memory transport with the PubSubTransport interface.

    receive() dispatches queued messages on the calling thread until the
    queue is drained or the cancel event is set.
    """

    def __init__(
        self,
        messages: Iterable[Any] = (),
        topic_exists: bool = True,
        receive_error: Optional[Exception] = None,
        delete_error: Optional[Exception] = None,
        on_message: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.messages = list(messages)
        self._topic_exists = topic_exists
        self.receive_error = receive_error
        self.delete_error = delete_error
        self.on_message = on_message
        self.calls: List[str] = []
        self.dispatched = 0
        self.ack_deadline_seconds: Optional[int] = None
        self.closed = False

    def topic_exists(self, topic: str) -> bool:
        self.calls.append(f"topic_exists:{topic}")
        return self._topic_exists

    def ensure_subscription(self, subscription: str, topic: str, ack_deadline_seconds: int = 20) -> bool:
        self.calls.append(f"ensure_subscription:{subscription}")
        self.ack_deadline_seconds = ack_deadline_seconds
        return True

    def delete_subscription(self, subscription: str) -> None:
        self.calls.append(f"delete_subscription:{subscription}")
        if self.delete_error is not None:
            raise self.delete_error

    def receive(
        self,
        subscription: str,
        callback: Callable[[Any], None],
        cancel_event: threading.Event,
        max_outstanding_messages: int = 1000,
    ) -> None:
        self.calls.append(f"receive:{subscription}")
        for index, message in enumerate(self.messages):
            if cancel_event.is_set():
                break
            callback(message)
            self.dispatched += 1
            if self.on_message is not None:
                self.on_message(index)
        if self.receive_error is not None:
            raise self.receive_error

    def close(self) -> None:
        self.closed = True


def build_entry(
    timestamp: str = "2024-01-01T00:00:00Z",
    pod_name: str = "app-7d8",
    namespace_name: str = "default",
    container_name: str = "app",
    text_payload: Optional[str] = "started",
    json_payload: Optional[Any] = None,
) -> Dict[str, Any]:
    """Build a Cloud Logging entry as exported by the legacy GKE agent."""
    entry: Dict[str, Any] = {
        "timestamp": timestamp,
        "labels": {
            "container.googleapis.com/pod_name": pod_name,
            "container.googleapis.com/namespace_name": namespace_name,
        },
        "resource": {
            "type": "container",
            "labels": {
                "project_id": "demo-project",
                "zone": "us-central1-a",
                "container_name": container_name,
            },
        },
    }
    if text_payload is not None:
        entry["textPayload"] = text_payload
    if json_payload is not None:
        entry["jsonPayload"] = json_payload
    return entry


@pytest.fixture
def make_entry() -> Callable[..., Dict[str, Any]]:
    """Factory for log entry dicts."""
    return build_entry


@pytest.fixture
def make_message() -> Callable[..., FakeMessage]:
    """Factory for fake messages carrying a JSON-encoded entry."""
    counter = {"next": 0}

    def _make(**fields: Any) -> FakeMessage:
        counter["next"] += 1
        data = json.dumps(build_entry(**fields)).encode("utf-8")
        return FakeMessage(data, message_id=str(counter["next"]))

    return _make


@pytest.fixture
def raw_message() -> Callable[[bytes], FakeMessage]:
    """Factory for fake messages carrying arbitrary bytes."""
    return lambda data: FakeMessage(data)


@pytest.fixture
def fake_transport() -> Callable[..., FakeTransport]:
    """Factory for fake transports."""
    return FakeTransport


@pytest.fixture
def transport_error() -> Callable[[str], TransportError]:
    return lambda message: TransportError(message)


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector on an isolated registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def output() -> List[str]:
    """Output sink capturing rendered lines."""
    return []


@pytest.fixture
def make_controller(output: List[str], metrics: MetricsCollector) -> Callable[..., DeliveryController]:
    """Factory for delivery controllers writing into the output fixture."""

    def _make(
        container: str = "",
        namespace: str = "",
        pod: str = "",
        limit: int = 1_000_000,
        sink: Optional[Callable[[str], None]] = None,
        fail_on_render_error: bool = True,
    ) -> DeliveryController:
        return DeliveryController(
            criteria=SelectionCriteria.build(container, namespace, pod),
            budget=ProcessingBudget(limit),
            cancel_event=threading.Event(),
            sink=sink if sink is not None else output.append,
            metrics=metrics,
            fail_on_render_error=fail_on_render_error,
        )

    return _make

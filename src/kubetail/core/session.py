"""
Tail session lifecycle.

Verifies the topic, ensures the subscription exists, runs the delivery
controller under the transport's receive loop, and deletes the
subscription on the way out, including after an operator interrupt.
"""

import signal
import threading
from enum import Enum
from types import FrameType
from typing import Any, Optional

import structlog

from .controller import DeliveryController
from .exceptions import ConfigurationError, TeardownError, TransportError

logger = structlog.get_logger(__name__)


class StopReason(str, Enum):
    """Why a session ended."""

    BUDGET_EXCEEDED = "budget_exceeded"
    INTERRUPTED = "interrupted"
    STREAM_CLOSED = "stream_closed"


class TailSession:
    """
    One subscription's worth of tailing.

    The transport must provide topic_exists, ensure_subscription,
    delete_subscription, receive and close (see PubSubTransport). The
    session owns the transport and closes it when the run ends.
    """

    def __init__(
        self,
        transport: Any,
        controller: DeliveryController,
        topic: str,
        subscription: str,
        ack_deadline_seconds: int = 20,
        max_outstanding_messages: int = 1000,
    ) -> None:
        self.transport = transport
        self.controller = controller
        self.topic = topic
        self.subscription = subscription
        self.ack_deadline_seconds = ack_deadline_seconds
        self.max_outstanding_messages = max_outstanding_messages

        self.interrupted = threading.Event()

    @property
    def cancel_event(self) -> threading.Event:
        return self.controller.cancel_event

    def open(self) -> None:
        """
        Verify the topic and make sure the subscription exists.

        Raises:
            ConfigurationError: If the topic does not exist
            TransportError: If the subscription cannot be created
        """
        if not self.transport.topic_exists(self.topic):
            raise ConfigurationError(
                f"Topic '{self.topic}' doesn't exist",
                details={"topic": self.topic},
            )

        self.transport.ensure_subscription(
            self.subscription,
            self.topic,
            ack_deadline_seconds=self.ack_deadline_seconds,
        )

    def run(self) -> StopReason:
        """
        Tail until the budget is spent, an interrupt arrives, or the stream fails.

        The subscription is deleted and the transport closed before
        returning or raising.

        Raises:
            KubeTailException: Fatal error from the transport, a delivery
                callback, or teardown
        """
        try:
            self.open()
            try:
                self.transport.receive(
                    self.subscription,
                    self.controller,
                    self.cancel_event,
                    max_outstanding_messages=self.max_outstanding_messages,
                )
            finally:
                self.controller.stop()
                self.close()
        finally:
            self.transport.close()

        if self.controller.fatal_error is not None:
            raise self.controller.fatal_error

        if self.interrupted.is_set():
            return StopReason.INTERRUPTED
        if self.controller.budget.exhausted:
            return StopReason.BUDGET_EXCEEDED
        return StopReason.STREAM_CLOSED

    def close(self) -> None:
        """
        Delete the subscription.

        Raises:
            TeardownError: If the subscription cannot be deleted
        """
        logger.info("Deleting subscription", subscription=self.subscription)
        try:
            self.transport.delete_subscription(self.subscription)
        except TransportError as e:
            logger.error(
                "Unable to delete subscription",
                subscription=self.subscription,
                error=str(e),
            )
            raise TeardownError(
                f"Unable to delete subscription '{self.subscription}'",
                details={"subscription": self.subscription, **e.details},
            ) from e

    def request_shutdown(self, signum: Optional[int] = None) -> None:
        """Ask the receive loop to stop; teardown happens when it unwinds."""
        if signum is not None:
            logger.info("Received signal", signal=signal.Signals(signum).name)
        self.interrupted.set()
        self.cancel_event.set()

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to request_shutdown. Main thread only."""
        def handler(signum: int, frame: Optional[FrameType]) -> None:
            self.request_shutdown(signum)

        signal.signal(signal.SIGINT, handler)
        signal.signal(signal.SIGTERM, handler)

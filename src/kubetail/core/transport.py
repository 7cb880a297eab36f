"""
Cloud Pub/Sub transport.

Thin wrapper over google-cloud-pubsub: topic lookup, idempotent
subscription create/delete, and a blocking streaming-pull receive loop
that stops when a cancel event is set. Backend failures surface as
TransportError; this module never retries on its own.
"""

import threading
from concurrent.futures import CancelledError
from typing import Any, Callable, Optional

import structlog
from google.api_core.exceptions import AlreadyExists, GoogleAPICallError, NotFound
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import pubsub_v1

from .exceptions import ConfigurationError, TransportError

logger = structlog.get_logger(__name__)

MessageCallback = Callable[[Any], None]


class PubSubTransport:
    """
    Pub/Sub session for one GCP project.

    Message callbacks run on the subscriber client's own thread pool.
    """

    def __init__(
        self,
        project: str,
        publisher: Optional[pubsub_v1.PublisherClient] = None,
        subscriber: Optional[pubsub_v1.SubscriberClient] = None,
        poll_interval_seconds: float = 0.5,
    ) -> None:
        self.project = project
        self.poll_interval = poll_interval_seconds

        try:
            self.publisher = publisher if publisher is not None else pubsub_v1.PublisherClient()
            self.subscriber = subscriber if subscriber is not None else pubsub_v1.SubscriberClient()
        except DefaultCredentialsError as e:
            raise ConfigurationError(
                f"Unable to create client: {e}",
                details={"project": project},
            ) from e

        logger.debug("Pub/Sub transport initialized", project=project)

    def topic_path(self, topic: str) -> str:
        return self.publisher.topic_path(self.project, topic)

    def subscription_path(self, subscription: str) -> str:
        return self.subscriber.subscription_path(self.project, subscription)

    def topic_exists(self, topic: str) -> bool:
        """Check whether the source topic exists."""
        try:
            self.publisher.get_topic(request={"topic": self.topic_path(topic)})
        except NotFound:
            return False
        except GoogleAPICallError as e:
            raise TransportError(
                f"Unable to look up topic '{topic}'",
                details={"error": str(e)},
            ) from e
        return True

    def ensure_subscription(
        self,
        subscription: str,
        topic: str,
        ack_deadline_seconds: int = 20,
    ) -> bool:
        """
        Create the subscription unless it already exists.

        Returns:
            True if a new subscription was created
        """
        subscription_path = self.subscription_path(subscription)

        try:
            self.subscriber.get_subscription(request={"subscription": subscription_path})
            logger.info("Reusing existing subscription", subscription=subscription)
            return False
        except NotFound:
            pass
        except GoogleAPICallError as e:
            raise TransportError(
                f"Unable to look up subscription '{subscription}'",
                details={"error": str(e)},
            ) from e

        try:
            created = self.subscriber.create_subscription(
                request={
                    "name": subscription_path,
                    "topic": self.topic_path(topic),
                    "ack_deadline_seconds": ack_deadline_seconds,
                }
            )
        except AlreadyExists:
            # Created concurrently by another tail
            logger.info("Reusing existing subscription", subscription=subscription)
            return False
        except GoogleAPICallError as e:
            raise TransportError(
                f"Unable to create subscription '{subscription}'",
                details={"error": str(e)},
            ) from e

        logger.info(
            "Created subscription",
            subscription=created.name,
            ack_deadline_seconds=ack_deadline_seconds,
        )
        return True

    def delete_subscription(self, subscription: str) -> None:
        """Delete the subscription."""
        try:
            self.subscriber.delete_subscription(
                request={"subscription": self.subscription_path(subscription)}
            )
        except GoogleAPICallError as e:
            raise TransportError(
                f"Unable to delete subscription '{subscription}'",
                details={"error": str(e)},
            ) from e

        logger.info("Subscription deleted", subscription=subscription)

    def receive(
        self,
        subscription: str,
        callback: MessageCallback,
        cancel_event: threading.Event,
        max_outstanding_messages: int = 1000,
    ) -> None:
        """
        Pull messages until cancel_event is set or the stream fails.

        Cancelling the streaming pull stops new dispatch. The call returns
        only after callbacks already running have finished.

        Raises:
            TransportError: If the streaming pull terminates with an error
        """
        flow_control = pubsub_v1.types.FlowControl(max_messages=max_outstanding_messages)
        future = self.subscriber.subscribe(
            self.subscription_path(subscription),
            callback=callback,
            flow_control=flow_control,
            await_callbacks_on_shutdown=True,
        )
        logger.info("Listening for messages", subscription=subscription)

        try:
            while not future.done():
                if cancel_event.wait(self.poll_interval):
                    break
        finally:
            future.cancel()

        try:
            future.result()
        except CancelledError:
            pass
        except GoogleAPICallError as e:
            raise TransportError(
                "Streaming pull failed",
                details={"subscription": subscription, "error": str(e)},
            ) from e

    def close(self) -> None:
        """Release the subscriber client's channel."""
        self.subscriber.close()
        logger.debug("Pub/Sub transport closed", project=self.project)

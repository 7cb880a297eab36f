"""
Delivery controller.

Runs one decode -> filter -> summarize -> render cycle per inbound
message and decides whether the message is acknowledged or negatively
acknowledged. The transport calls the controller concurrently from its
own worker threads; the only shared mutable state is the processing
budget.
"""

import threading
from enum import Enum
from typing import Any, Callable, Optional

import click
import structlog

from .budget import BudgetOutcome, ProcessingBudget
from .decoder import decode_record
from .exceptions import DecodeError, KubeTailException, RenderError, TransportError
from .filtering import SelectionCriteria, exclusion_reason
from .metrics import MetricsCollector
from .summary import render_line, summarize

logger = structlog.get_logger(__name__)

OutputSink = Callable[[str], None]


class ControllerState(str, Enum):
    """Lifecycle of a delivery controller."""

    RUNNING = "running"
    BUDGET_EXCEEDED = "budget_exceeded"
    STOPPED = "stopped"


class DeliveryController:
    """
    Per-message orchestration plus the budget/cancellation state machine.

    Instances are callables suitable as a Pub/Sub subscriber callback.
    Fatal errors raised inside a callback are recorded and cancellation is
    requested; the session re-raises them once the receive loop unwinds.
    """

    def __init__(
        self,
        criteria: SelectionCriteria,
        budget: ProcessingBudget,
        cancel_event: threading.Event,
        sink: Optional[OutputSink] = None,
        metrics: Optional[MetricsCollector] = None,
        fail_on_render_error: bool = True,
    ) -> None:
        self.criteria = criteria
        self.budget = budget
        self.cancel_event = cancel_event
        self.sink: OutputSink = sink if sink is not None else click.echo
        self.metrics = metrics
        self.fail_on_render_error = fail_on_render_error

        self.state = ControllerState.RUNNING
        self.fatal_error: Optional[KubeTailException] = None
        self._state_lock = threading.Lock()

        logger.debug(
            "Delivery controller initialized",
            budget_limit=budget.limit,
            fail_on_render_error=fail_on_render_error,
        )

    def __call__(self, message: Any) -> None:
        """Handle one delivered message."""
        outcome = self.budget.consume()
        if self.metrics:
            self.metrics.record_received(self.budget.count)

        if outcome is not BudgetOutcome.WITHIN:
            if outcome is BudgetOutcome.EXHAUSTED:
                self._exhaust()
            self._settle(message, accept=False, reason="budget_exceeded")
            return

        try:
            record = decode_record(message.data)
        except DecodeError as e:
            logger.warning(
                "Error parsing message",
                error=str(e),
                message_id=getattr(message, "message_id", None),
                details=e.details,
            )
            if self.metrics:
                self.metrics.record_decode_error()
            record = e.record

        reason = exclusion_reason(record, self.criteria)
        if reason is not None:
            logger.debug("Message out of scope", reason=reason, pod=record.pod_name)
            if self.metrics:
                self.metrics.record_filtered(reason)
            self._settle(message, accept=True)
            return

        summary = summarize(record)

        try:
            self.sink(render_line(record, summary))
        except Exception as e:
            error = RenderError(
                "Failed to write log line",
                details={"error": str(e), "error_type": type(e).__name__},
            )
            if self.fail_on_render_error:
                self._fail(error)
                self._settle(message, accept=False, reason="render_error")
                return
            logger.warning("Skipping message after render error", error=str(e))
            self._settle(message, accept=True)
            return

        if self.metrics:
            self.metrics.record_printed()
        self._settle(message, accept=True)

    def stop(self) -> None:
        """Mark the controller stopped once the receive loop has unwound."""
        with self._state_lock:
            previous = self.state
            self.state = ControllerState.STOPPED
        logger.debug("Delivery controller stopped", previous_state=previous.value)

    def _exhaust(self) -> None:
        """Transition to BUDGET_EXCEEDED and request cancellation."""
        with self._state_lock:
            if self.state is ControllerState.RUNNING:
                self.state = ControllerState.BUDGET_EXCEEDED
        logger.info("Message budget reached, stopping", limit=self.budget.limit)
        self.cancel_event.set()

    def _fail(self, error: KubeTailException) -> None:
        """Record the first fatal error and request cancellation."""
        with self._state_lock:
            if self.fatal_error is None:
                self.fatal_error = error
        logger.error(str(error), error_code=error.error_code, details=error.details)
        self.cancel_event.set()

    def _settle(self, message: Any, accept: bool, reason: str = "") -> None:
        """Acknowledge or negatively acknowledge a message."""
        try:
            if accept:
                message.ack()
            else:
                message.nack()
        except Exception as e:
            self._fail(TransportError(
                "Failed to acknowledge message" if accept else "Failed to reject message",
                details={"error": str(e), "message_id": getattr(message, "message_id", None)},
            ))
            return

        if not accept and self.metrics:
            self.metrics.record_rejected(reason)

"""
Command-line entry point.

Sets up logging, loads settings, and runs one tail session against the
configured Pub/Sub subscription.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Any, Optional

import click
import structlog
from prometheus_client import CollectorRegistry

from . import __version__
from .config import DEFAULT_CONFIG_PATH, TailSettings, load_settings
from .core.budget import ProcessingBudget
from .core.controller import DeliveryController, OutputSink
from .core.exceptions import KubeTailException
from .core.filtering import SelectionCriteria
from .core.metrics import MetricsCollector
from .core.session import StopReason, TailSession
from .core.transport import PubSubTransport


def configure_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structured logging. Log lines go to stderr; stdout is for tail output."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    # The Pub/Sub client logs every stream reconnect at INFO
    logging.getLogger("google.cloud.pubsub_v1").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def run_tail(
    settings: TailSettings,
    transport: Optional[Any] = None,
    sink: Optional[OutputSink] = None,
    install_signal_handlers: bool = True,
) -> StopReason:
    """
    Build the pipeline from settings and run a tail session to completion.

    Raises:
        KubeTailException: Configuration, transport, render or teardown failure
    """
    logger = structlog.get_logger(__name__)

    criteria = SelectionCriteria.build(
        container_name=settings.container,
        namespace_name=settings.namespace,
        pod_pattern=settings.pod_pattern,
    )

    logger.info("Setting up logger...", topic=settings.topic, subscription=settings.subscription)
    if settings.container:
        logger.info("Filtering by container", container=settings.container)
    if settings.namespace:
        logger.info("Filtering by namespace", namespace=settings.namespace)
    if settings.pod_pattern:
        logger.info("Filtering by pod name regex", pod_pattern=settings.pod_pattern)
    if criteria.is_empty:
        logger.info("No filters set, printing every entry")

    metrics = MetricsCollector(registry=CollectorRegistry())
    if settings.metrics_port is not None:
        metrics.serve(settings.metrics_port)

    if transport is None:
        transport = PubSubTransport(settings.project)

    controller = DeliveryController(
        criteria=criteria,
        budget=ProcessingBudget(settings.max_messages),
        cancel_event=threading.Event(),
        sink=sink,
        metrics=metrics,
        fail_on_render_error=settings.fail_on_render_error,
    )

    session = TailSession(
        transport=transport,
        controller=controller,
        topic=settings.topic,
        subscription=settings.subscription,
        ack_deadline_seconds=settings.ack_deadline_seconds,
        max_outstanding_messages=settings.max_outstanding_messages,
    )
    if install_signal_handlers:
        session.install_signal_handlers()

    return session.run()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-n", "--namespace", default=None, help="Namespace name, defaults to empty")
@click.option("-c", "--container", default=None, help="Container name, defaults to empty")
@click.option(
    "-C",
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Config file, defaults to {DEFAULT_CONFIG_PATH}",
)
@click.option("-p", "--pod", "pod_pattern", default=None, help="Pod name regex (substring ok too)")
@click.option("--max-messages", type=int, default=None, help="Stop after this many messages")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (default: INFO)",
)
@click.option("--log-json", is_flag=True, default=False, help="Emit log lines as JSON")
@click.option("--metrics-port", type=int, default=None, help="Serve Prometheus metrics on this port")
@click.option(
    "--skip-render-errors",
    is_flag=True,
    default=False,
    help="Keep tailing when a line cannot be written",
)
@click.version_option(__version__, prog_name="kube-tail")
def main(
    namespace: Optional[str],
    container: Optional[str],
    config_file: Optional[Path],
    pod_pattern: Optional[str],
    max_messages: Optional[int],
    log_level: Optional[str],
    log_json: bool,
    metrics_port: Optional[int],
    skip_render_errors: bool,
) -> None:
    """Tail Kubernetes Engine logs from a Cloud Pub/Sub topic."""
    try:
        settings = load_settings(
            config_file,
            namespace=namespace,
            container=container,
            pod_pattern=pod_pattern,
            max_messages=max_messages,
            log_level=log_level,
            log_json=True if log_json else None,
            metrics_port=metrics_port,
            fail_on_render_error=False if skip_render_errors else None,
        )
    except KubeTailException as e:
        configure_logging()
        structlog.get_logger(__name__).error(str(e), error_code=e.error_code, details=e.details)
        raise SystemExit(e.exit_code)

    configure_logging(settings.log_level, settings.log_json)
    logger = structlog.get_logger(__name__)

    try:
        reason = run_tail(settings)
    except KubeTailException as e:
        logger.error(str(e), error_code=e.error_code, details=e.details)
        raise SystemExit(e.exit_code)

    logger.info("Tail finished", reason=reason.value)


if __name__ == "__main__":
    main()

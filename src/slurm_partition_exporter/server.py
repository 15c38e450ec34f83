"""HTTP server for the Slurm Partition Exporter."""

import json
import logging
import os
import pathlib

import prometheus_client
import prometheus_client.core
import pydantic
import starlette.applications
import starlette.requests
import starlette.responses
import starlette.routing
import structlog

from . import collector, slurmcli
from .collectors import partitions

CONFIG_ENV_VAR = "SLURM_PARTITION_EXPORTER_CONFIG_PATH"
logger = structlog.get_logger(__name__)


class ExporterConfig(pydantic.BaseModel):
    """Configuration for the Slurm Partition Exporter."""

    sinfo_command: str = pydantic.Field(
        "sinfo",
        description="Executable used to query partition state",
        min_length=1,
    )
    squeue_command: str = pydantic.Field(
        "squeue",
        description="Executable used to query the job queue",
        min_length=1,
    )
    command_timeout: float = pydantic.Field(
        slurmcli.DEFAULT_TIMEOUT,
        description="Per-command timeout in seconds",
        gt=0,
    )
    port: int = pydantic.Field(9092, description="HTTP server port", gt=0, lt=65536)
    metrics_path: str = pydantic.Field(
        "/metrics",
        description="URL path for metrics endpoint",
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output."""
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str) -> ExporterConfig:
    """Load and validate exporter configuration from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a JSON object.
        pydantic.ValidationError: If a setting is invalid.
    """
    try:
        raw = pathlib.Path(config_path).read_text()
    except FileNotFoundError as e:
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg) from e

    data = json.loads(raw)
    if not isinstance(data, dict):
        msg = f"Configuration in {config_path} must be a JSON object"
        raise ValueError(msg)

    return ExporterConfig.model_validate(data)


def create_registry_with_collectors(
    cli_client: slurmcli.SlurmCliClient,
) -> prometheus_client.core.CollectorRegistry:
    """Create a Prometheus registry with the SLURM partition collector.

    Creates a custom registry (not the global one) and registers the
    partition collector. The CLI client is injected into the fetcher at
    build time.

    Args:
        cli_client: CLI client used by the collector.

    Returns:
        Configured Prometheus registry with injected dependencies.
    """
    registry = prometheus_client.core.CollectorRegistry()

    # Lambda captures cli_client in closure, creating a zero-argument fetcher
    partitions_collector = collector.SlurmCollector(
        fetcher=lambda: partitions.fetch(cli_client),
        generator=partitions.generate_metrics,
        describer=partitions.describe_metrics,
        metric_prefix="partition",
        scraper_description=(
            f"commands {cli_client.sinfo_command} and {cli_client.squeue_command}"
        ),
    )
    registry.register(partitions_collector)
    logger.info(
        "Registered collector",
        collector="partitions",
        metric_prefix="partition",
    )

    return registry


def create_starlette_app(
    metrics_path: str,
    registry: prometheus_client.core.CollectorRegistry,
) -> starlette.applications.Starlette:
    """Create a Starlette application for serving Prometheus metrics.

    Args:
        metrics_path: URL path for metrics endpoint (e.g., "/metrics").
        registry: Prometheus collector registry.

    Returns:
        Configured Starlette application.
    """

    def metrics_endpoint(
        request: starlette.requests.Request,
    ) -> starlette.responses.Response:
        """Generate and serve Prometheus metrics.

        Args:
            request: The incoming HTTP request.

        Returns:
            PlainTextResponse with metrics in Prometheus exposition format.
        """
        metrics_output = prometheus_client.generate_latest(registry)
        logger.info(
            "HTTP request",
            client_ip=request.client.host if request.client else "unknown",
            method=request.method,
            path=request.url.path,
        )
        return starlette.responses.PlainTextResponse(
            content=metrics_output,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    routes = [
        starlette.routing.Route(metrics_path, metrics_endpoint, methods=["GET"]),
    ]

    return starlette.applications.Starlette(routes=routes)


def create_exporter(config: ExporterConfig) -> starlette.applications.Starlette:
    """Construct the exporter ASGI app from validated config."""
    cli_client = slurmcli.SlurmCliClient(
        sinfo_command=config.sinfo_command,
        squeue_command=config.squeue_command,
        timeout=config.command_timeout,
    )
    logger.info(
        "Created CLI client",
        sinfo_command=config.sinfo_command,
        squeue_command=config.squeue_command,
        timeout_seconds=config.command_timeout,
    )

    registry = create_registry_with_collectors(cli_client=cli_client)

    return create_starlette_app(
        metrics_path=config.metrics_path,
        registry=registry,
    )


def create_app(config_path: str | None = None) -> starlette.applications.Starlette:
    """Create the exporter ASGI app using a config path or environment default."""
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR, "/config.json")
    config = load_config(resolved_path)
    configure_logging(config.log_level)
    return create_exporter(config)

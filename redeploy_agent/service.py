"""Runtime entry point for the redeploy agent."""

from __future__ import annotations

import logging
import sys

import uvicorn

from .config import Settings, settings

logger = logging.getLogger(__name__)


def validate_settings(config: Settings) -> None:
    if not config.github_webhook_secret:
        logger.error("REDEPLOY_GITHUB_WEBHOOK_SECRET environment variable is required")
        raise SystemExit(1)


def start_metrics_server(port: int | None) -> None:
    """Start Prometheus metrics HTTP server in a background thread."""
    if port is None:
        return
    from prometheus_client import start_http_server
    try:
        start_http_server(port)
        logger.info(f"Prometheus metrics server started on port {port}")
    except Exception as e:
        logger.warning(f"Failed to start Prometheus metrics server: {e}")


def main():
    config = settings
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stdout,
    )
    validate_settings(config)
    start_metrics_server(config.metrics_port)

    from .app import app

    logger.info(f"Redeployment Service starting on port {config.port}")
    logger.info(f"Monitoring apps directory: {config.apps_dir}")
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":  # pragma: no cover
    main()

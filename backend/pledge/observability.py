"""Logfire cloud observability initialization and instrumentation."""

import logging

import logfire

from pledge import __version__
from pledge.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings, app=None) -> bool:
    """
    Initialize Logfire tracing for the bet lifecycle.

    Call once at process startup, before any client is opened. Instruments:
    - HTTPX clients (payment gateway, financial-data provider)
    - Python logging (bridged to Logfire)
    - the FastAPI app, when one is passed

    Returns:
        True if Logfire was configured, False when no token is set or
        configuration failed. Commands keep running either way.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="pledge",
            service_version=__version__,
            environment="paper" if settings.paper_mode else "live",
        )

        logfire.instrument_httpx()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        if app is not None:
            logfire.instrument_fastapi(app)

        logger.info("✓ Logfire cloud tracking initialized")
        return True

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False

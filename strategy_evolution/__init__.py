"""Strategy evolution engine: variant generation, backtesting and metrics."""

import logging
import os
from pathlib import Path

import sentry_sdk
from dotenv import load_dotenv
from sentry_sdk.integrations.logging import LoggingIntegration

__version__ = "0.3.0"

# ENGINE_* and SENTRY_* must be in the environment before settings are built
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")

from strategy_evolution.settings import SentrySettings  # noqa: E402


def _init_sentry() -> bool:
    # reads SENTRY_* only; ENGINE_* is validated when the engine asks for it
    sentry = SentrySettings()
    if not sentry.enabled:
        logging.getLogger(__name__).debug("Sentry DSN not set; Sentry disabled")
        return False
    sentry_sdk.init(
        dsn=sentry.dsn,
        integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
        traces_sample_rate=sentry.traces_sample_rate,
        environment=sentry.environment or os.getenv("ENV", "local"),
        release=__version__,
    )
    return True


SENTRY_ENABLED = _init_sentry()

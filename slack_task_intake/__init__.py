"""Slack Task Intake package initialisation."""

from .background import run_async  # noqa: F401
from .clients import ClientConfig, ClientRegistry, get_client_registry  # noqa: F401
from .config import AppSettings, get_settings  # noqa: F401
from .logging_config import configure_logging  # noqa: F401

__all__ = [
    "AppSettings",
    "get_settings",
    "run_async",
    "ClientConfig",
    "ClientRegistry",
    "get_client_registry",
    "configure_logging",
]

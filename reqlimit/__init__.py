"""Per-client sliding-window request limiting for ASGI applications."""

from .config import LimiterConfig, LimiterConfigError, Settings, get_settings
from .identity import client_key_from_scope, extract_client_key
from .logging_config import configure_logging
from .middleware import RequestLimiter, log_rejection, new
from .utils.address import AddressParseError
from .window import Decision, WindowTracker

__all__ = [
    "AddressParseError",
    "Decision",
    "LimiterConfig",
    "LimiterConfigError",
    "RequestLimiter",
    "Settings",
    "WindowTracker",
    "client_key_from_scope",
    "configure_logging",
    "extract_client_key",
    "get_settings",
    "log_rejection",
    "new",
]

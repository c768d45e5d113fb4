from ._logging import configure_lib_logger, disable_lib_logger
from .httpx import ClientOptions, create_httpx_client
from .session_cache import MISSING, SessionCache

__all__ = [
    "configure_lib_logger",
    "disable_lib_logger",
    "ClientOptions",
    "create_httpx_client",
    "MISSING",
    "SessionCache",
]

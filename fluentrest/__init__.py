"""fluentrest: a chainable HTTP request builder on top of ``requests``."""

from __future__ import annotations

# Semantic version for package consumers.
__version__ = "0.1.0"

from .api import Defaults, defaults, delete, get, head, options, patch, post, put, request  # noqa: E402
from .cookies import CookieJar, jar  # noqa: E402
from .errors import (  # noqa: E402
    CookieJarError,
    DecompressionError,
    FluentRestError,
    NoResponseError,
    StatusError,
)
from .logging_utils import configure_logging, install_null_handler  # noqa: E402
from .maps import Headers, OrderedMap, Query  # noqa: E402
from .request import Request  # noqa: E402
from .response import Response  # noqa: E402
from .transport import Transport  # noqa: E402

install_null_handler()

__all__ = [
    "CookieJar",
    "CookieJarError",
    "DecompressionError",
    "Defaults",
    "FluentRestError",
    "Headers",
    "NoResponseError",
    "OrderedMap",
    "Query",
    "Request",
    "Response",
    "StatusError",
    "Transport",
    "__version__",
    "configure_logging",
    "defaults",
    "delete",
    "get",
    "head",
    "jar",
    "options",
    "patch",
    "post",
    "put",
    "request",
]

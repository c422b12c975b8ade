"""Process-wide logging setup.

Every record carries the current request id (``-`` outside a request) so the
log lines of one sale workflow can be grepped together.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [request_id=%(request_id)s] %(message)s"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    # Idempotent: the app factory may run more than once (tests, reloads)
    if any(getattr(h, "_sales_backend", False) for h in root.handlers):
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    handler._sales_backend = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)

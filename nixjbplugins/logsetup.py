"""Logging to standard error."""

from __future__ import annotations

import logging
import sys

_HANDLER_NAME = "nixjbplugins-stderr"
_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(debug: bool = False) -> logging.Handler:
    """Send log records to standard error at DEBUG or INFO level; return the handler."""
    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    return handler
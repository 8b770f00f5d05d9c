"""Application-wide logging utilities.

This module exposes a shared ``logger`` bound to the ``uvicorn.error``
logger so log messages consistently appear in the server output.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("uvicorn.error")


def configure_logging(level: str) -> None:
    """Apply the configured level to the shared logger."""

    logger.setLevel(level.upper())

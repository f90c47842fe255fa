"""Logging helpers for the prediction engine."""

from __future__ import annotations

import logging
from typing import Iterable


def configure_logging(
    level: int | str = logging.INFO,
    handlers: Iterable[logging.Handler] | None = None,
) -> None:
    """Configure root logging for engine runs.

    Parameters
    ----------
    level:
        Logging level passed to :func:`logging.basicConfig`. Level names such
        as ``"DEBUG"`` are accepted as well.
    handlers:
        Optional iterable of handlers to install instead of the default
        stream handler.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=list(handlers) if handlers else None,
    )

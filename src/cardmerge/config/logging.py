"""Root logger setup for the command-line entry point."""

from __future__ import annotations

import logging

from .env import env_value
from .errors import ConfigurationError

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def log_level_from_env(default: int = logging.INFO) -> int:
    """Level named by ``CARDMERGE_LOG_LEVEL`` (``DEBUG``, ``info``, ...)."""

    name = env_value("CARDMERGE_LOG_LEVEL")
    if name is None:
        return default
    level = logging.getLevelNamesMapping().get(name.upper())
    if level is None:
        raise ConfigurationError(f"CARDMERGE_LOG_LEVEL is not a logging level: {name!r}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Configure the root logger once.

    Batch progress is logged at INFO, so that is the default unless
    ``CARDMERGE_LOG_LEVEL`` says otherwise. ``force`` replaces handlers set up
    earlier, e.g. by a test harness.
    """

    logging.basicConfig(
        level=log_level_from_env() if level is None else level,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        force=force,
    )

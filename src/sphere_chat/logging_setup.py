"""Logging configuration for the CLI. Library modules only call getLogger()."""

import logging

from rich.logging import RichHandler


def setup_logging(level: str = "WARNING") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s | %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # socketio/engineio are chatty at INFO
    for noisy in ("socketio", "engineio", "httpx"):
        logging.getLogger(noisy).setLevel(max(logging.getLogger().level, logging.WARNING))

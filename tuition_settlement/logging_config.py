"""
Logging setup.

Modules log through logging.getLogger(__name__); this configures
the root logger once, at process start.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a single stream handler."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        force=True,
    )
    # SQL echo belongs to DEBUG sessions only
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

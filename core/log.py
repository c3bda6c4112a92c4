"""
core/log.py -- Process-wide logging setup.

Library code only ever calls logging.getLogger("authcore.<area>"). The
embedding service (or main.py for the CLI) calls configure_logging() once at
startup; the core never configures handlers on import.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)

"""
Logging setup for the cardtable server.

Library modules only create named loggers under the ``cardtable`` hierarchy;
handlers are installed once, by the server entry point.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level="INFO") -> None:
    """Install the root handler and set the ``cardtable`` logger level."""
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("cardtable").setLevel(level)

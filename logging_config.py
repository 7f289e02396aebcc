"""
Console logging for the router CLI.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"

ROUTER_LOGGER = "smart_router"


def _router_loggers():
    for name in list(logging.root.manager.loggerDict):
        if name == ROUTER_LOGGER or name.startswith(ROUTER_LOGGER + "."):
            yield logging.getLogger(name)


def setup(level=logging.INFO, stream=None):
    """
    Send every router log line through a single root handler.

    get_logger() gives each module its own stderr handler for library use;
    those are removed here so CLI output is not duplicated.
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for logger in _router_loggers():
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
    logging.getLogger(ROUTER_LOGGER).setLevel(level)


def setup_minimal():
    """Warnings and errors only."""
    setup(level=logging.WARNING, stream=sys.stderr)


def setup_debug():
    """Everything, including per-path drops and budget checks."""
    setup(level=logging.DEBUG)

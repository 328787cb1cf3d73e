"""
FeCap Hysteresis Model
======================
Package logger.

Faults are logged at WARNING, so the default level keeps them on the
console while direction changes and history stack dumps (DEBUG) stay
silent until enable_debug_logging() is called.
"""

import logging
import sys

logger = logging.getLogger("fecap")
logger.setLevel(logging.WARNING)

if not logger.handlers:
    _console = logging.StreamHandler(sys.stdout)
    _console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(_console)


def set_log_level(level: int):
    """Apply level to the fecap logger and every handler attached to it."""
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def enable_debug_logging():
    """Trace turning points and stack dumps, tagged with the record level."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(console)
    set_log_level(logging.DEBUG)

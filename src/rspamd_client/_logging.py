"""
Library logging helpers.

rspamd_client never configures handlers itself: applications opt in with
``logging.getLogger("rspamd_client").setLevel(logging.DEBUG)``.
Key material is never passed to the logger.
"""

import logging

_ROOT_LOGGER_NAME = "rspamd_client"

logging.getLogger(_ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger in the rspamd_client namespace.

    Args:
        name: Module name (usually ``__name__``)

    Returns:
        Logger that propagates to the ``rspamd_client`` logger
    """
    if name != _ROOT_LOGGER_NAME and not name.startswith(_ROOT_LOGGER_NAME + "."):
        name = f"{_ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)

"""Logger lookup shared by every drivepush module."""

import logging


def get_logger(name: str) -> logging.Logger:
    """Return the ``drivepush.*`` logger called ``name``.

    Records always propagate, so an application's ``basicConfig()`` or
    ``setup_logging()`` picks them up. When nothing has configured the root
    logger yet, the logger is capped at WARNING so per-chunk INFO lines stay
    quiet in library use.

    Args:
        name: Dotted logger name, e.g. ``drivepush.upload.chunk``

    Returns:
        The logger
    """
    logger = logging.getLogger(name)
    logger.propagate = True

    if not logging.getLogger().handlers:
        logger.setLevel(logging.WARNING)

    return logger

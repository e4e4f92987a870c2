import logging

_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def get_logger(name: str = "hyperdrive", level: int = logging.INFO) -> logging.Logger:
    """
    Returns a logger with a stream handler attached, unless one already is.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(h)
    logger.setLevel(level)
    return logger

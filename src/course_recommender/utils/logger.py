import logging
import os
import sys


def setup_logger(name: str) -> logging.Logger:
    """
    Return the stdout logger shared by course_recommender modules.

    Every engine, data and service module logs through this helper. The level
    comes from COURSE_RECOMMENDER_LOG_LEVEL (INFO when unset) and is re-read on
    each call; the handler is attached once per logger name.

    Parameters:
        name (str): Name of the logger.

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(os.getenv("COURSE_RECOMMENDER_LOG_LEVEL", "INFO").upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False  # avoid double logging if root also prints

    return logger

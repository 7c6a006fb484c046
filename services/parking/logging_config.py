"""Process-wide logging setup for the parking service."""
import logging

from parking import config


def setup_logging(level: str = None) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level or config.LOG_LEVEL, logging.INFO))

    # uvicorn --reload calls us again; don't stack handlers
    root_logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    ))
    root_logger.addHandler(console_handler)

    # pika is chatty at INFO on every connection
    logging.getLogger("pika").setLevel(logging.WARNING)

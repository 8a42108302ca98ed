"""JSON logging configuration for the TLS tool."""

import logging

from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter limited to timestamp, level, message, exc_info, funcName, lineno."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        allowed_fields = {
            "timestamp",
            "level",
            "message",
            "exc_info",
            "funcName",
            "lineno",
        }

        for key in [key for key in log_record if key not in allowed_fields]:
            log_record.pop(key)


def _setup_logger() -> logging.Logger:
    logger = logging.getLogger("tls_tool")

    # Prevent duplicate handlers if module reloaded
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(
        CustomJsonFormatter(
            fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
            timestamp=True,
        )
    )

    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def set_verbose(verbose: bool) -> None:
    """Switch LOGGER between DEBUG and INFO."""
    LOGGER.setLevel(logging.DEBUG if verbose else logging.INFO)


# Singleton logger instance - import this in other modules
LOGGER = _setup_logger()

import json
import logging
import sys
import traceback
from typing import Any
from typing import TextIO

import loguru
from fastapi import Response
from loguru import logger

# Third-party loggers that flood stdout at INFO (blob uploads, provider calls, pool events)
NOISY_LOGGERS = {
    "azure": logging.WARNING,
    "azure.core.pipeline.policies": logging.ERROR,
    "azure.identity": logging.ERROR,
    "httpx": logging.WARNING,
    "asyncpg": logging.WARNING,
}

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<bold><white>{message}</white></bold> | <dim>{extra}</dim> {stacktrace}"
)


# Runs once at import (src/exam_api/__init__.py) and again from create_app() / the sweep job
def configure_logger(level: str = "INFO", json_logs: bool = False, sink: TextIO | None = None) -> None:
    """
    Replace loguru's default handler with a single stream sink.

    Args:
        level: Minimum log level
        json_logs: Emit one JSON document per line (Azure Log Analytics, container log shippers)
            instead of the coloured console format
        sink: Stream to write to, stdout when omitted
    """
    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)

    logger.remove()

    if json_logs:
        logger.add(sink=sink or sys.stdout, level=level, diagnose=False, serialize=True)
        return

    logger.add(
        sink=sink or sys.stdout,
        level=level,
        diagnose=False,
        format=CONSOLE_FORMAT,
        filter=process_log_record,
    )


def process_log_record(record: "loguru.Record") -> "loguru.Record":
    r"""
    Prepare a record for the single-line console format.

    The structured ``extra`` dict (request id, notification id, ...) is rendered as
    compact JSON, and an attached exception becomes a ``stacktrace`` field whose
    newlines are replaced by ``\r`` so one log event stays on one line.
    """
    if record["extra"]:
        record["extra"] = json.dumps(record["extra"], default=str)

    record["stacktrace"] = ""
    if record["exception"]:
        record["stacktrace"] = get_formatted_stacktrace(
            record["exception"], replace_newline_character_with_carriage_return=True
        )

    return record


def get_formatted_stacktrace(loguru_record_exception: Any, replace_newline_character_with_carriage_return: bool) -> str:
    """Format an (exc_type, exc_value, traceback) triple."""
    exc_type, exc_value, exc_traceback = loguru_record_exception
    stacktrace = "".join(traceback.format_exception(exc_type, exc_value, exc_traceback))
    if replace_newline_character_with_carriage_return:
        return stacktrace.replace("\n", "\r")
    return stacktrace


def log_response_info(response: Response):
    """Debug-log the status and headers of an error response built by the handlers."""
    logger.debug(
        "Error response sent",
        http_response={"status_code": response.status_code, "headers": dict(response.headers.items())},
    )

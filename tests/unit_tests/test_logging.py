"""Unit tests for the loguru configuration."""

import io
import json
import sys

import pytest
from loguru import logger

from exam_api.monitoring.logger import configure_logger
from exam_api.monitoring.logger import get_formatted_stacktrace
from exam_api.monitoring.logger import process_log_record


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    configure_logger(sink=sys.__stderr__)


class TestProcessLogRecord:
    def test_extra_serialized_to_single_line_json(self):
        record = {"extra": {"request_id": "abc", "count": 2}, "exception": None}

        result = process_log_record(record)

        assert json.loads(result["extra"]) == {"request_id": "abc", "count": 2}
        assert result["stacktrace"] == ""

    def test_empty_extra_left_alone(self):
        record = {"extra": {}, "exception": None}

        assert process_log_record(record)["extra"] == {}

    def test_exception_adds_carriage_return_stacktrace(self):
        try:
            raise RuntimeError("blob container missing")
        except RuntimeError:
            exc_info = sys.exc_info()

        result = process_log_record({"extra": {}, "exception": exc_info})

        assert "RuntimeError: blob container missing" in result["stacktrace"]
        assert "\n" not in result["stacktrace"]


class TestGetFormattedStacktrace:
    def test_keeps_newlines_when_asked(self):
        try:
            raise ValueError("bad")
        except ValueError:
            exc_info = sys.exc_info()

        stacktrace = get_formatted_stacktrace(exc_info, replace_newline_character_with_carriage_return=False)

        assert stacktrace.startswith("Traceback")
        assert "\n" in stacktrace


class TestConfigureLogger:
    def test_messages_reach_stdout(self, capsys):
        configure_logger(level="DEBUG")

        logger.info("Notification sent", notification_id="n-1")

        captured = capsys.readouterr()
        assert "Notification sent" in captured.out
        assert '"notification_id": "n-1"' in captured.out

    def test_json_lines_for_log_shippers(self):
        stream = io.StringIO()
        configure_logger(level="INFO", json_logs=True, sink=stream)

        logger.info("Sweep finished", sent=3)
        logger.debug("hidden")

        lines = stream.getvalue().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])["record"]
        assert record["message"] == "Sweep finished"
        assert record["extra"] == {"sent": 3}

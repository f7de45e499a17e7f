"""
Integration tests for monitor/logger.py -- structured logging.
"""

import json
import logging
import os
import sys

from monitor.logger import ConsoleFormatter, JSONFormatter, component_tag, setup_logging


def _record(level=logging.INFO, msg="Hello %s", args=("world",), exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="pipeline.loop", level=level, pathname="loop.py",
        lineno=1, msg=msg, args=args, exc_info=exc_info,
    )


class TestJSONFormatter:
    def test_format_basic_message(self):
        parsed = json.loads(JSONFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["msg"] == "Hello world"
        assert parsed["logger"] == "pipeline.loop"
        assert "ts" in parsed
        assert parsed["component"] == "loop"
        assert "mode" not in parsed

    def test_mode_stamped(self):
        parsed = json.loads(JSONFormatter(mode="live").format(_record()))
        assert parsed["mode"] == "live"

    def test_format_with_exception(self):
        try:
            raise ValueError("test error")
        except ValueError:
            record = _record(logging.ERROR, "Failed", (), sys.exc_info())
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["level"] == "ERROR"
        assert "test error" in parsed["exception"]


class TestComponentTag:
    def test_known_packages(self):
        assert component_tag("executor.engine") == "exec"
        assert component_tag("client.feed") == "feed"
        assert component_tag("pipeline.loop") == "loop"

    def test_unknown_logger_truncated(self):
        assert component_tag("uvicorn.error") == "uvic"


class TestConsoleFormatter:
    def test_format_basic_message(self):
        output = ConsoleFormatter(use_color=False).format(_record())
        assert "INF" in output
        assert " loop " in output
        assert "Hello world" in output

    def test_format_warning(self):
        output = ConsoleFormatter(use_color=False).format(_record(logging.WARNING, "Watch out", ()))
        assert "WRN" in output


def _cleanup_handlers():
    """Close and remove all file handlers from root logger."""
    root = logging.getLogger()
    for h in root.handlers[:]:
        if isinstance(h, logging.FileHandler):
            h.close()
            root.removeHandler(h)


class TestSetupLogging:
    def teardown_method(self):
        _cleanup_handlers()

    def test_root_always_debug(self, tmp_path):
        setup_logging("WARNING", log_dir=str(tmp_path))
        assert logging.getLogger().level == logging.DEBUG

    def test_console_handler_respects_level(self, tmp_path):
        setup_logging("WARNING", log_dir=str(tmp_path))
        console_handlers = [
            h for h in logging.getLogger().handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        ]
        assert len(console_handlers) == 1
        assert console_handlers[0].level == logging.WARNING

    def test_returns_log_path(self, tmp_path):
        log_path = setup_logging("INFO", log_dir=str(tmp_path))
        assert log_path.endswith(".log")
        assert "guardian_" in log_path
        assert os.path.exists(log_path)

    def test_mode_in_log_name(self, tmp_path):
        log_path = setup_logging("INFO", log_dir=str(tmp_path), mode="simulation")
        assert os.path.basename(log_path).startswith("guardian_simulation_")

    def test_no_verbose_file_when_disabled(self):
        assert setup_logging("INFO", log_dir=None) == ""
        assert not any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)

    def test_json_handler_attached_when_file_specified(self, tmp_path):
        path = tmp_path / "events.jsonl"
        setup_logging("INFO", json_log_file=str(path), log_dir=None, mode="simulation")
        logging.getLogger("pipeline.loop").info("cycle %d done", 3)
        _cleanup_handlers()

        entry = json.loads(path.read_text().splitlines()[-1])
        assert entry["msg"] == "cycle 3 done"
        assert entry["mode"] == "simulation"

    def test_noisy_libraries_quieted(self):
        setup_logging("DEBUG", log_dir=None)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("web3").level == logging.WARNING

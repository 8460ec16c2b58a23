import logging
import logging.handlers

import pytest

from recedit.utils.logging_setup import (
    ContextFilter,
    LOG_FORMAT,
    LOG_OPERATION,
    LOG_PROJECT_ID,
    LOG_SESSION_ID,
    configure_logging,
    current_context,
    log_context,
    parse_level,
)


def _record():
    return logging.LogRecord("test.logger", logging.INFO, __file__, 1, "hello", (), None)


def test_context_filter_defaults():
    record = _record()
    ContextFilter().filter(record)
    assert record.session_id == "-"
    assert record.project_id == "-"
    assert record.operation == "-"


def test_context_filter_injects_values():
    session_token = LOG_SESSION_ID.set("session_1")
    project_token = LOG_PROJECT_ID.set("project_1")
    operation_token = LOG_OPERATION.set("cut_at")
    try:
        record = _record()
        ContextFilter().filter(record)
        assert record.session_id == "session_1"
        assert record.project_id == "project_1"
        assert record.operation == "cut_at"
    finally:
        LOG_OPERATION.reset(operation_token)
        LOG_PROJECT_ID.reset(project_token)
        LOG_SESSION_ID.reset(session_token)


def test_log_context_restores_previous_values():
    with log_context(session_id="outer", operation="save"):
        with log_context(project_id="p1", operation="undo"):
            assert LOG_OPERATION.get() == "undo"
            assert LOG_SESSION_ID.get() == "outer"
        assert LOG_OPERATION.get() == "save"
        assert LOG_PROJECT_ID.get() is None
    assert LOG_SESSION_ID.get() is None


def test_formatting_uses_expected_fields():
    record = _record()
    ContextFilter().filter(record)
    formatted = logging.Formatter(LOG_FORMAT).format(record)
    assert "test.logger" in formatted
    assert "hello" in formatted
    assert "|" in formatted


def test_configure_logging_writes_context(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_filters, saved_level = list(root.handlers), list(root.filters), root.level
    log_file = tmp_path / "logs" / "recedit.log"
    try:
        configure_logging(log_file=str(log_file), force=True)
        with log_context(session_id="s1", project_id="p1", operation="cut_at"):
            logging.getLogger("recedit.test").info("committed")
        for handler in root.handlers:
            handler.flush()
        text = log_file.read_text(encoding="utf-8")
        assert "s1 | p1 | cut_at | committed" in text
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            if handler not in saved_handlers:
                handler.close()
        for log_filter in list(root.filters):
            root.removeFilter(log_filter)
        for handler in saved_handlers:
            root.addHandler(handler)
        for log_filter in saved_filters:
            root.addFilter(log_filter)
        root.setLevel(saved_level)


def test_log_context_rejects_unknown_fields():
    with pytest.raises(ValueError):
        with log_context(tool="zoom"):
            pass
    assert current_context() == {"session_id": "-", "project_id": "-", "operation": "-"}


def test_parse_level_accepts_names_and_numbers():
    assert parse_level("debug") == logging.DEBUG
    assert parse_level(" Warning ") == logging.WARNING
    assert parse_level(logging.ERROR) == logging.ERROR
    with pytest.raises(ValueError):
        parse_level("chatty")


def test_configure_logging_keeps_foreign_handlers_and_rotates(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    foreign = logging.NullHandler()
    root.addHandler(foreign)
    try:
        configure_logging(log_file=str(tmp_path / "a.log"), level="WARNING", force=True)
        configure_logging(log_file=str(tmp_path / "ignored.log"))
        assert not (tmp_path / "ignored.log").exists()
        assert root.level == logging.WARNING

        configure_logging(log_file=str(tmp_path / "b.log"), force=True, max_bytes=1024, backup_count=2)
        ours = [h for h in root.handlers if h not in saved_handlers and h is not foreign]
        assert len(ours) == 1
        assert isinstance(ours[0], logging.handlers.RotatingFileHandler)
        assert ours[0].backupCount == 2
        assert foreign in root.handlers
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            if handler not in saved_handlers:
                handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

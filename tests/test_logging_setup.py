import logging

import pytest
from statement_import.logging_setup import import_logger, resolve_level


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        (logging.DEBUG, logging.DEBUG),
        ("warning", logging.WARNING),
        (" 15 ", 15),
        ("chatty", logging.INFO),
    ],
)
def test_resolve_level(level, expected):
    assert resolve_level(level) == expected


def test_resolve_level_reads_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STATEMENT_IMPORT_LOG_LEVEL", "ERROR")
    assert resolve_level() == logging.ERROR

    monkeypatch.delenv("STATEMENT_IMPORT_LOG_LEVEL")
    assert resolve_level() == logging.INFO


def test_import_logger_prefixes_message_and_sets_record_attribute():
    records: list[logging.LogRecord] = []

    class _Collect(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            records.append(record)

    base = logging.getLogger("tests.import_logger")
    base.setLevel(logging.INFO)
    base.propagate = False
    handler = _Collect()
    base.addHandler(handler)
    try:
        import_logger(base, 42).info("materialized %d row(s)", 3)
    finally:
        base.removeHandler(handler)

    (record,) = records
    assert record.getMessage() == "Import 42: materialized 3 row(s)"
    assert record.import_id == 42

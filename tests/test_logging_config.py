import logging

from logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("services.jobs", logging.INFO, __file__, 1, "Batch run finished", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_whitelisted_extras() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")

    line = formatter.format(_record(owner_id="owner-1", period_key="2025-01-15", processed=3, ignored="x"))

    assert line == "INFO Batch run finished | owner_id=owner-1 period_key=2025-01-15 processed=3"


def test_formatter_skips_none_values() -> None:
    formatter = ContextualFormatter(fmt="%(message)s", extra_keys=["owner_id"])

    assert formatter.format(_record(owner_id=None)) == "Batch run finished"

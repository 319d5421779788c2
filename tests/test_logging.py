import json
import logging

from starship.core.logging import JsonFormatter


def _record(**extra):
    record = logging.LogRecord("starship.ledger", logging.WARNING, __file__, 1, "spend rejected", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context_fields():
    payload = json.loads(JsonFormatter().format(_record(user_id=4, balance=30, amount=-50)))
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "starship.ledger"
    assert payload["message"] == "spend rejected"
    assert payload["service"] == "starship-api"
    assert (payload["user_id"], payload["balance"], payload["amount"]) == (4, 30, -50)


def test_json_formatter_omits_missing_fields():
    payload = json.loads(JsonFormatter().format(_record()))
    assert "user_id" not in payload
    assert "exception" not in payload


def test_non_ascii_kept_readable():
    record = _record()
    record.msg = "完成任务: 整理书包"
    assert "整理书包" in JsonFormatter().format(record)

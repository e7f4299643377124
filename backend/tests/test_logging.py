import json
import logging

from visitflow.core.logging import build_formatter


def _record(message):
    return logging.LogRecord("visitflow.test", logging.INFO, __file__, 1, message, None, None)


def test_json_formatter_emits_one_object_per_record():
    line = build_formatter("json").format(_record("Visit v-1 processed"))
    payload = json.loads(line)

    assert payload["message"] == "Visit v-1 processed"
    assert payload["levelname"] == "INFO"
    assert payload["name"] == "visitflow.test"


def test_text_formatter_is_default():
    line = build_formatter("text").format(_record("hello"))

    assert "INFO [visitflow.test] hello" in line

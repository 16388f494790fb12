from __future__ import annotations

import logging

import orjson

from knowledge_hub.core.logging import JsonFormatter, log_context


def test_json_formatter_lifts_context_fields() -> None:
    record = logging.LogRecord("knowledge_hub.test", logging.INFO, __file__, 1, "Indexed %s", ("doc_1",), None)
    for key, value in log_context(document_id="doc_1", chunks=3, language=None).items():
        setattr(record, key, value)

    payload = orjson.loads(JsonFormatter().format(record))
    assert payload["message"] == "Indexed doc_1"
    assert payload["level"] == "INFO"
    assert payload["document_id"] == "doc_1"
    assert payload["chunks"] == 3
    assert "language" not in payload


def test_json_formatter_includes_exception() -> None:
    try:
        raise ValueError("bad vector")
    except ValueError:
        import sys

        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
    payload = orjson.loads(JsonFormatter().format(record))
    assert "ValueError: bad vector" in payload["exc_info"]

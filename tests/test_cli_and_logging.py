# tests/test_cli_and_logging.py
from __future__ import annotations

import json
import logging

from communiserver.cli.__main__ import main
from communiserver.logging_config import JsonFormatter
from communiserver.middleware.request_id import RequestIdLogFilter, bind_request_id, reset_request_id


def test_seed_command_prints_result(capsys):
    main(["seed", "--demo"])
    out = capsys.readouterr().out.strip().splitlines()
    result = json.loads(out[-1])
    assert result["ok"] is True
    assert result["admin_created"] is True
    assert result["demo"]["village_id"]

    main(["seed"])
    again = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert again["settings_created"] == 0
    assert again["demo"] is None


def test_json_formatter_includes_extras_and_request_id():
    record = logging.LogRecord("communiserver.locations", logging.INFO, __file__, 1, "leader assigned", None, None)
    record.entity_type = "village"
    record.user_id = "u-1"

    token = bind_request_id("rid-9")
    try:
        payload = json.loads(JsonFormatter().format(record))
    finally:
        reset_request_id(token)

    assert payload["message"] == "leader assigned"
    assert payload["request_id"] == "rid-9"
    assert payload["entity_type"] == "village"
    assert payload["user_id"] == "u-1"
    assert "bucket" not in payload


def test_filter_stamps_request_id_on_records():
    record = logging.LogRecord("communiserver.access", logging.INFO, __file__, 1, "GET /x 200", None, None)
    token = bind_request_id("rid-10")
    try:
        assert RequestIdLogFilter().filter(record) is True
    finally:
        reset_request_id(token)
    assert record.request_id == "rid-10"
    assert json.loads(JsonFormatter().format(record))["request_id"] == "rid-10"

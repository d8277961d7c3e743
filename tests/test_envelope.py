"""Tests for the result envelope codec."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json

from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND, CallToolResult, TextContent

from adt_mcp.envelope import (
    INTERNAL_ERROR_MESSAGE,
    MAX_SAFE_INTEGER,
    SERIALIZATION_ERROR_MESSAGE,
    encode_failure,
    encode_success,
    error_code,
    to_json,
    tool_error,
)


def _body(result):
    assert len(result.content) == 1
    assert result.content[0].type == "text"
    return json.loads(result.content[0].text)


def test_success_is_single_text_block():
    result = encode_success({"status": "success", "result": [1, "two", None]})

    assert result.isError is False
    assert _body(result) == {"status": "success", "result": [1, "two", None]}


def test_big_integer_becomes_decimal_string():
    result = encode_success({"count": 9007199254740993})

    assert _body(result) == {"count": "9007199254740993"}
    assert '"9007199254740993"' in result.content[0].text


def test_negative_big_integer_becomes_decimal_string():
    assert json.loads(to_json([-(MAX_SAFE_INTEGER + 1)])) == [str(-(MAX_SAFE_INTEGER + 1))]


def test_safe_integer_boundary_stays_numeric():
    data = json.loads(to_json({"max": MAX_SAFE_INTEGER, "min": -MAX_SAFE_INTEGER}))
    assert data == {"max": MAX_SAFE_INTEGER, "min": -MAX_SAFE_INTEGER}


def test_nested_big_integers_are_rewritten():
    value = {"rows": [{"id": 2**60, "ok": True}], "ids": (2**54, 7)}
    assert json.loads(to_json(value)) == {
        "rows": [{"id": str(2**60), "ok": True}],
        "ids": [str(2**54), 7],
    }


def test_booleans_are_not_treated_as_integers():
    assert json.loads(to_json({"flag": True, "other": False})) == {"flag": True, "other": False}


def test_datetimes_and_dataclasses():
    @dataclass
    class Revision:
        author: str
        number: int

    when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    data = json.loads(to_json({"when": when, "rev": Revision("DEVELOPER", 2**53)}))

    assert data["when"] == "2024-05-01T12:00:00+00:00"
    assert data["rev"] == {"author": "DEVELOPER", "number": str(2**53)}


def test_unserializable_value_gives_serialization_error():
    result = encode_success({"handle": object()})

    assert result.isError is True
    assert _body(result) == {"error": SERIALIZATION_ERROR_MESSAGE, "code": INTERNAL_ERROR}


def test_nan_gives_serialization_error():
    result = encode_success({"ratio": float("nan")})

    assert result.isError is True
    assert _body(result)["error"] == SERIALIZATION_ERROR_MESSAGE


def test_classified_error_keeps_code_and_message():
    result = encode_failure(tool_error(METHOD_NOT_FOUND, "Unknown tool: nope"))

    assert result.isError is True
    assert _body(result) == {"error": "Unknown tool: nope", "code": METHOD_NOT_FOUND}


def test_invalid_params_code_is_preserved():
    result = encode_failure(tool_error(INVALID_PARAMS, "Invalid arguments for getObjects"))
    assert _body(result)["code"] == INVALID_PARAMS


def test_unclassified_error_is_redacted():
    result = encode_failure(RuntimeError("connect timeout to 10.0.0.5:44300 (password=secret)"))

    body = _body(result)
    assert body == {"error": INTERNAL_ERROR_MESSAGE, "code": INTERNAL_ERROR}
    assert "secret" not in result.content[0].text


def test_error_code_reads_the_envelope():
    assert error_code(encode_success({"status": "success"})) is None
    assert error_code(encode_failure(tool_error(METHOD_NOT_FOUND, "x"))) == METHOD_NOT_FOUND
    assert error_code(encode_failure(RuntimeError("x"))) == INTERNAL_ERROR
    assert error_code(encode_success({"v": object()})) == INTERNAL_ERROR


def test_error_code_of_malformed_failure_is_internal():
    result = CallToolResult(content=[TextContent(type="text", text="oops")], isError=True)
    assert error_code(result) == INTERNAL_ERROR

"""Tests for the JSON-RPC envelope."""

import json

import pytest

from sandbox_agent.errors import MethodNotFoundError
from sandbox_agent.protocol import (
    UNKNOWN_ID,
    RequestParseError,
    encode,
    error_response,
    parse_request,
    result_response,
)


class TestParseRequest:
    def test_valid(self):
        req = parse_request('{"jsonrpc":"2.0","id":"1","method":"ping","params":{"a":1}}')
        assert req.id == "1"
        assert req.method == "ping"
        assert req.params == {"a": 1}

    def test_bytes_and_integer_id(self):
        req = parse_request(b'{"jsonrpc":"2.0","id":7,"method":"ping"}\n')
        assert req.id == 7
        assert req.params == {}

    def test_null_params(self):
        assert parse_request('{"jsonrpc":"2.0","id":"1","method":"ping","params":null}').params == {}

    def test_not_json(self):
        with pytest.raises(RequestParseError) as exc:
            parse_request("this is not json")
        assert exc.value.request_id == UNKNOWN_ID

    def test_not_an_object(self):
        with pytest.raises(RequestParseError) as exc:
            parse_request("[1, 2, 3]")
        assert exc.value.request_id == UNKNOWN_ID

    @pytest.mark.parametrize(
        "payload",
        [
            {"id": "r1", "method": "ping"},
            {"jsonrpc": "1.0", "id": "r1", "method": "ping"},
            {"jsonrpc": "2.0", "id": "r1"},
            {"jsonrpc": "2.0", "id": "r1", "method": ""},
            {"jsonrpc": "2.0", "id": "r1", "method": "ping", "params": [1]},
        ],
    )
    def test_invalid_keeps_id(self, payload):
        with pytest.raises(RequestParseError) as exc:
            parse_request(json.dumps(payload))
        assert exc.value.request_id == "r1"

    @pytest.mark.parametrize("rid", ["", None, True, 1.5, {"x": 1}])
    def test_bad_id_is_unknown(self, rid):
        with pytest.raises(RequestParseError) as exc:
            parse_request(json.dumps({"jsonrpc": "2.0", "id": rid, "method": "ping"}))
        assert exc.value.request_id == UNKNOWN_ID


class TestResponses:
    def test_result(self):
        assert result_response("1", {"pong": True}) == {"jsonrpc": "2.0", "id": "1", "result": {"pong": True}}

    def test_error(self):
        resp = error_response("1", MethodNotFoundError("frobnicate"))
        assert resp["id"] == "1"
        assert resp["error"]["code"] == -32000
        assert resp["error"]["message"] == "Unknown method: frobnicate"
        assert "result" not in resp

    def test_encode_is_one_line(self):
        data = encode(result_response("1", {"content": "a\nb\r\nc "}))
        assert data.endswith(b"\n")
        assert data.count(b"\n") == 1
        assert json.loads(data)["result"]["content"] == "a\nb\r\nc "

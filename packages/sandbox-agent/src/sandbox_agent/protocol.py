"""Line-delimited JSON-RPC envelope."""

from __future__ import annotations

import json
from typing import Any, Literal, Union

from pydantic import BaseModel, Field, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from sandbox_agent.errors import ProtocolError, SandboxError

JSONRPC_VERSION = "2.0"
UNKNOWN_ID = "unknown"

RequestId = Union[StrictStr, StrictInt]


class Request(BaseModel):
    jsonrpc: Literal["2.0"]
    id: RequestId
    method: StrictStr = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


class RequestParseError(ProtocolError):
    """A line that could not be turned into a Request."""

    def __init__(self, message: str, *, request_id: Any = UNKNOWN_ID):
        super().__init__(message)
        self.request_id = request_id


def _best_effort_id(payload: Any) -> Any:
    if isinstance(payload, dict):
        rid = payload.get("id")
        if isinstance(rid, str) and rid:
            return rid
        if isinstance(rid, int) and not isinstance(rid, bool):
            return rid
    return UNKNOWN_ID


def parse_request(line: str | bytes) -> Request:
    """Decode one input line. Raises RequestParseError carrying the best id known."""
    try:
        payload = json.loads(line)
    except ValueError as e:
        raise RequestParseError(f"Parse error: {e}") from e

    request_id = _best_effort_id(payload)
    if not isinstance(payload, dict):
        raise RequestParseError("Invalid JSON-RPC request", request_id=request_id)
    if payload.get("params") is None:
        payload = {k: v for k, v in payload.items() if k != "params"}
    try:
        request = Request.model_validate(payload)
    except PydanticValidationError as e:
        raise RequestParseError("Invalid JSON-RPC request", request_id=request_id) from e
    if request.id == "":
        raise RequestParseError("Invalid JSON-RPC request", request_id=UNKNOWN_ID)
    return request


def result_response(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: Any, error: SandboxError) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error.to_error()}


def encode(message: dict[str, Any]) -> bytes:
    """Serialize one response as a single protocol line."""
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")

"""
Error classifier for failures reported by Theater actors.

Actors report errors as ``{"error_type": "<kind>", "data": <bytes>}`` or as a
single-key envelope ``{"<KindName>": {"data": <bytes>}}``. ``data`` carries a
kind-specific payload (an integer, a string or a JSON document). The
classifier turns any of these, plus ordinary Python exceptions, into an
``ErrorReport`` and never raises.
"""

import json
import logging
import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from git_agent.errors import GitAgentError

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    OPERATION_TIMEOUT = "operation-timeout"
    CHANNEL_CLOSED = "channel-closed"
    SHUTTING_DOWN = "shutting-down"
    FUNCTION_NOT_FOUND = "function-not-found"
    TYPE_MISMATCH = "type-mismatch"
    INTERNAL = "internal"
    SERIALIZATION_ERROR = "serialization-error"
    UPDATE_COMPONENT_ERROR = "update-component-error"
    PAUSED = "paused"
    NATIVE = "native"
    UNKNOWN = "unknown"


class ErrorReport(BaseModel):
    kind: ErrorKind
    human_message: str
    raw_detail: Any = None


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _normalize_kind(name: str) -> str:
    """``OperationTimeout`` / ``operation_timeout`` -> ``operation-timeout``."""
    return _CAMEL_BOUNDARY.sub("-", name).replace("_", "-").lower()


def _to_bytes(data: Any) -> Optional[bytes]:
    if data is None:
        return None
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, (list, tuple)):
        try:
            return bytes(data)
        except (TypeError, ValueError):
            return None
    return None


def parse_timeout_data(data: Any) -> Optional[int]:
    """8-byte little-endian unsigned integer, in seconds."""
    raw = _to_bytes(data)
    if raw is None or len(raw) != 8:
        return None
    return int.from_bytes(raw, "little", signed=False)


def parse_string_data(data: Any) -> Optional[str]:
    raw = _to_bytes(data)
    if raw is None:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def parse_internal_error_data(data: Any) -> Any:
    text = parse_string_data(data)
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return "Could not parse internal error details."


def _stringify(obj: Any) -> str:
    try:
        return json.dumps(obj, default=_json_default)
    except (TypeError, ValueError):
        return str(obj)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return list(obj)
    return str(obj)


def _classify_structured(kind_name: str, data: Any, raw: Any) -> ErrorReport:
    kind = _normalize_kind(kind_name)

    if kind == ErrorKind.OPERATION_TIMEOUT.value:
        seconds = parse_timeout_data(data)
        duration = f"{seconds} seconds" if seconds is not None else "a specified duration"
        return ErrorReport(kind=ErrorKind.OPERATION_TIMEOUT,
                           human_message=f"Operation timed out after {duration}.", raw_detail=raw)

    if kind == ErrorKind.CHANNEL_CLOSED.value:
        return ErrorReport(kind=ErrorKind.CHANNEL_CLOSED,
                           human_message="Communication channel to the actor was closed unexpectedly.",
                           raw_detail=raw)

    if kind == ErrorKind.SHUTTING_DOWN.value:
        return ErrorReport(kind=ErrorKind.SHUTTING_DOWN,
                           human_message="Actor is shutting down and cannot accept new operations.",
                           raw_detail=raw)

    if kind == ErrorKind.FUNCTION_NOT_FOUND.value:
        name = parse_string_data(data) or "unknown"
        return ErrorReport(kind=ErrorKind.FUNCTION_NOT_FOUND,
                           human_message=f"Error: The function '{name}' was not found in the actor.",
                           raw_detail=raw)

    if kind == ErrorKind.TYPE_MISMATCH.value:
        name = parse_string_data(data) or "unknown"
        return ErrorReport(
            kind=ErrorKind.TYPE_MISMATCH,
            human_message=f"Error: A parameter or return type did not match for function '{name}'.",
            raw_detail=raw,
        )

    if kind == ErrorKind.INTERNAL.value:
        details = parse_internal_error_data(data)
        if isinstance(details, dict) and isinstance(details.get("description"), str):
            return ErrorReport(kind=ErrorKind.INTERNAL,
                               human_message=f"An internal actor error occurred: {details['description']}",
                               raw_detail=raw)
        logger.error("Internal actor error details: %s", _stringify(details))
        return ErrorReport(kind=ErrorKind.INTERNAL,
                           human_message="An internal actor error occurred. Check the logs for more details.",
                           raw_detail=raw)

    if kind == ErrorKind.SERIALIZATION_ERROR.value:
        return ErrorReport(kind=ErrorKind.SERIALIZATION_ERROR,
                           human_message="Failed to serialize or deserialize data for actor communication.",
                           raw_detail=raw)

    if kind == ErrorKind.UPDATE_COMPONENT_ERROR.value:
        detail = parse_string_data(data) or "no details available"
        return ErrorReport(kind=ErrorKind.UPDATE_COMPONENT_ERROR,
                           human_message=f"Failed to update the actor's component: {detail}.",
                           raw_detail=raw)

    if kind == ErrorKind.PAUSED.value:
        return ErrorReport(kind=ErrorKind.PAUSED,
                           human_message="The actor is paused and cannot process operations.",
                           raw_detail=raw)

    return ErrorReport(
        kind=ErrorKind.UNKNOWN,
        human_message=f"An unknown actor error occurred: {_stringify({'kind': kind_name, 'data': data})}",
        raw_detail=raw,
    )


def classify_error(error: Any) -> ErrorReport:
    """Classify any error value. Total over its input."""
    if isinstance(error, BaseException):
        # A transport exception may carry the actor's structured error
        if isinstance(error, GitAgentError) and isinstance(error.details, dict) and "actor_error" in error.details:
            return classify_error(error.details["actor_error"])
        message = str(error) or type(error).__name__
        return ErrorReport(kind=ErrorKind.NATIVE, human_message=message, raw_detail=repr(error))

    if isinstance(error, dict):
        if len(error) == 1:
            (name, payload), = error.items()
            if isinstance(name, str) and isinstance(payload, dict) and "data" in payload:
                return _classify_structured(name, payload["data"], error)

        for key in ("error_type", "kind"):
            name = error.get(key)
            if isinstance(name, str):
                return _classify_structured(name, error.get("data"), error)

        return ErrorReport(kind=ErrorKind.UNKNOWN, human_message=_stringify(error), raw_detail=error)

    if isinstance(error, str):
        return ErrorReport(kind=ErrorKind.UNKNOWN, human_message=error, raw_detail=error)

    if error is None:
        return ErrorReport(kind=ErrorKind.UNKNOWN, human_message="An unknown error occurred.", raw_detail=None)

    return ErrorReport(kind=ErrorKind.UNKNOWN, human_message=_stringify(error), raw_detail=repr(error))


def format_actor_error(error: Any) -> str:
    return classify_error(error).human_message

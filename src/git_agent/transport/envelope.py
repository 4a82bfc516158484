"""
Control request construction and response parsing.
"""

from typing import Any, Optional

from pydantic import ValidationError

from git_agent.models.envelope import ControlResponseModel
from git_agent.models.events import ControlRequest, Role


def build_request(request_type: str, **fields: Any) -> dict[str, Any]:
    return {"type": request_type, **fields}


def build_add_message(text: str) -> dict[str, Any]:
    """``AddMessage`` request carrying one user text block."""
    return build_request(
        ControlRequest.ADD_MESSAGE,
        message={"role": Role.USER, "content": [{"type": "text", "text": text}]},
    )


def parse_response(raw: Any) -> Optional[ControlResponseModel]:
    """Parse a control response. Returns None if it has no ``type``."""
    if not isinstance(raw, dict):
        return None
    try:
        return ControlResponseModel.model_validate(raw)
    except ValidationError:
        return None

"""
Input validation for the Request API.

Turns raw request data into typed values or raises ``ValidationError`` with
a machine-readable code. Validation never touches the registry.
"""

import json
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.requests import Request

from claude_monitor.models import MAX_PID

INVALID_REQUEST = "INVALID_REQUEST"
INVALID_PID = "INVALID_PID"
SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
TOOL_CALL_NOT_FOUND = "TOOL_CALL_NOT_FOUND"
INTERNAL_ERROR = "INTERNAL_ERROR"

ModelT = TypeVar("ModelT", bound=BaseModel)


class ValidationError(Exception):
    """Raised when request input fails validation."""

    def __init__(self, message: str, code: str = INVALID_REQUEST):
        super().__init__(message)
        self.code = code
        self.message = message


def parse_pid(raw: Any) -> int:
    """
    Parse a pid path segment.

    Only plain decimal digits are accepted ("12abc" and "-3" are rejected).
    """
    text = str(raw).strip()
    if not (text.isascii() and text.isdigit()):
        raise ValidationError("Invalid PID format", code=INVALID_PID)
    pid = int(text)
    if not 0 < pid <= MAX_PID:
        raise ValidationError("Invalid PID format", code=INVALID_PID)
    return pid


def _describe(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item.get("loc", ())) or "body"
        if item.get("type") == "missing":
            parts.append(f"Missing required field: {field}")
        else:
            parts.append(f"Invalid field {field}: {item.get('msg')}")
    return "; ".join(parts)


def validate_body(model: type[ModelT], data: Any) -> ModelT:
    """Validate decoded JSON against a request model."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e)) from e


async def read_body(request: Request, model: type[ModelT]) -> ModelT:
    """Decode a JSON request body and validate it. An empty body counts as {}."""
    raw = await request.body()
    if not raw.strip():
        data: Any = {}
    else:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError(f"Invalid JSON body: {e}") from e
    return validate_body(model, data)

"""
Response envelope shared by every Request API route.

Success: {"success": true, "data": ...}
Failure: {"success": false, "error": {"code": "...", "message": "..."}}
"""

from typing import Any

from pydantic import BaseModel
from starlette.responses import JSONResponse


def _to_json(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, list):
        return [_to_json(item) for item in data]
    return data


def success(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse({"success": True, "data": _to_json(data)}, status_code=status_code)


def error(code: str, message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": {"code": code, "message": message}},
        status_code=status_code,
    )

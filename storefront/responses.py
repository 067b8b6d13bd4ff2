"""
Response envelope helpers.

Success: ``{"status": "success", "payload": ...}`` or
``{"status": "success", "response": "<message>"}``.
Failure: ``{"status": <http status>, "response": "<message>"}``.
"""

from typing import Any, Dict

from fastapi.responses import JSONResponse


def success(payload: Any) -> Dict[str, Any]:
    return {"status": "success", "payload": payload}


def success_message(message: str) -> Dict[str, Any]:
    return {"status": "success", "response": message}


def error_response(status_code: int, message: str, headers: Dict[str, str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": status_code, "response": message},
        headers=headers,
    )

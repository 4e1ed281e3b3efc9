from typing import Any, Optional


def success_response(data: Optional[dict[str, Any]] = None, message: Optional[str] = None) -> dict[str, Any]:
    """Standard success envelope: {success, data?, message?}."""
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body


def error_response(message: str, error: Optional[str] = None, **extra: Any) -> dict[str, Any]:
    """Standard failure envelope: {success: false, message, error?, ...}."""
    body: dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    body.update({key: value for key, value in extra.items() if value is not None})
    return body

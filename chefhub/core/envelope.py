from typing import Any, Optional


def ok(data: Any = None, message: Optional[str] = None, **extra: Any) -> dict:
    """Success envelope: {"success": true, "message"?, "data"?, ...extra}."""
    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body

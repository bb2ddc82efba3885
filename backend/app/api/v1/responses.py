"""Success envelope shared by the API endpoints"""
from typing import Any, Dict, Optional


def success(data: Any = None, message: Optional[str] = None, **extra) -> Dict[str, Any]:
    """
    {"success": true, "data": ..., "message": ...} plus any extra top-level keys
    (pagination, counts). Pydantic models inside are encoded by FastAPI.
    """
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    body.update(extra)
    return body

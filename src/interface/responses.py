"""JSON envelopes shared by all routers."""

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel


def dump(model: BaseModel | list[BaseModel]) -> Any:  # noqa: ANN401
    """Serialize models with their camelCase aliases."""
    if isinstance(model, list):
        return [m.model_dump(by_alias=True, mode="json") for m in model]
    return model.model_dump(by_alias=True, mode="json")


def success_response(
    payload: dict[str, Any] | None = None,
    *,
    message: str | None = None,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build ``{"success": true, "message"?: ..., **payload}``."""
    content: dict[str, Any] = {"success": True}
    if message is not None:
        content["message"] = message
    if payload:
        content.update(payload)
    return JSONResponse(content=content, status_code=status_code, headers=headers)

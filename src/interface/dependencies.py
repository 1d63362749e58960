"""Request dependencies: authentication, rate limits and body parsing."""

import logging
from collections.abc import Sequence
from typing import Annotated, Any, TypeVar

from fastapi import Depends, Request, UploadFile
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError

from src.core.errors import AuthenticationError, ValidationFailedError
from src.core.rate_limiter import rate_limiter
from src.core.security import verify_access_token
from src.core.storage_client import UploadedFile


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Resolve the bearer token to the requesting user's id.

    Raises:
        AuthenticationError: If the token is missing, invalid or expired
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError
    return verify_access_token(credentials.credentials)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]


async def enforce_notification_rate_limit(user_id: CurrentUserId) -> str:
    await rate_limiter.check_notification_creation_rate_limit(user_id)
    return user_id


async def enforce_analytics_rate_limit(user_id: CurrentUserId) -> str:
    await rate_limiter.check_analytics_rate_limit(user_id)
    return user_id


def first_error_message(errors: Sequence[Any]) -> str:
    """Turn the first pydantic error into a short client-facing message."""
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = str(first["loc"][-1]) if first.get("loc") else "value"
    if first["type"] == "missing":
        return f"{field} is required"
    message = str(first["msg"])
    return message.removeprefix("Value error, ")


def validate_payload(model: type[ModelT], data: dict[str, Any]) -> ModelT:
    """Validate a raw payload against a request model.

    Raises:
        ValidationFailedError: With the first validation message
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailedError(first_error_message(e.errors())) from e


async def to_uploaded_file(upload: UploadFile) -> UploadedFile:
    data = await upload.read()
    return UploadedFile(
        filename=upload.filename or "upload",
        content_type=upload.content_type or "application/octet-stream",
        data=data,
    )


async def read_body(request: Request, *, file_field: str) -> tuple[dict[str, Any], UploadedFile | None]:
    """Read a JSON or multipart body.

    Multipart bodies may carry one file under ``file_field``; empty form values
    are dropped so that they read as "not provided".

    Raises:
        ValidationFailedError: If the body is not valid JSON
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        data: dict[str, Any] = {}
        upload: UploadedFile | None = None
        for key, value in form.multi_items():
            if key == file_field and not isinstance(value, str):
                if value.filename:
                    upload = await to_uploaded_file(value)
            elif isinstance(value, str) and value != "":
                data[key] = value
        return data, upload

    raw = await request.body()
    if not raw:
        return {}, None
    try:
        body = await request.json()
    except ValueError as e:
        raise ValidationFailedError("Invalid JSON payload") from e
    if not isinstance(body, dict):
        raise ValidationFailedError("Request body must be a JSON object")
    return body, None

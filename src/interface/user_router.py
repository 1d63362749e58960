"""Profile endpoints for the authenticated user."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.domain.update_models import PasswordUpdate, UserUpdate
from src.interface.dependencies import CurrentUserId, read_body, validate_payload
from src.interface.responses import dump, success_response
from src.services import user_service


router = APIRouter(prefix="/user", tags=["user"])


@router.get("/get-user")
async def get_user(user_id: CurrentUserId) -> JSONResponse:
    user = await user_service.get_user(user_id=user_id)
    return success_response({"user": dump(user)})


@router.put("/update-user")
async def update_user(request: Request, user_id: CurrentUserId) -> JSONResponse:
    """Update name/email; a multipart ``avatar`` file replaces the avatar."""
    data, avatar = await read_body(request, file_field="avatar")
    payload = validate_payload(UserUpdate, data)
    user = await user_service.update_user(user_id=user_id, payload=payload, avatar=avatar)
    return success_response({"user": dump(user)}, message="User updated successfully")


@router.put("/update-password")
async def update_password(payload: PasswordUpdate, user_id: CurrentUserId) -> JSONResponse:
    await user_service.update_password(user_id=user_id, payload=payload)
    return success_response(message="Password updated successfully")


@router.delete("/delete-user")
async def delete_user(user_id: CurrentUserId) -> JSONResponse:
    await user_service.delete_user(user_id=user_id)
    return success_response(message="User deleted successfully")

"""Registration and login endpoints."""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from src.domain.create_models import LoginRequest, RegisterRequest
from src.interface.responses import dump, success_response
from src.services import user_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register")
async def register(payload: RegisterRequest) -> JSONResponse:
    """Create an account and return an access token."""
    result = await user_service.register(payload=payload)
    return success_response(
        {"token": result.token, "user": dump(result.user)},
        message="User registered successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/login")
async def login(payload: LoginRequest) -> JSONResponse:
    """Exchange email and password for an access token."""
    result = await user_service.login(payload=payload)
    return success_response({"token": result.token, "user": dump(result.user)}, message="Login successful")

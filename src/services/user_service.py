"""User service for registration, login and profile management."""

import logging

from src.core import db_client
from src.core.errors import ConflictError, InvalidCredentialsError, NotFoundError, ValidationFailedError
from src.core.logging import log_event, span
from src.core.security import hash_password, issue_access_token, verify_password
from src.core.storage_client import StorageError, UploadedFile, storage_client
from src.domain.create_models import LoginRequest, RegisterRequest
from src.domain.update_models import PasswordUpdate, UserUpdate
from src.domain.user import User
from src.models.service_models import AuthResult


logger = logging.getLogger(__name__)

AVATAR_FOLDER = "avatars"


async def _find_by_email(email: str) -> dict | None:
    return await db_client.get_first_record(
        collection="users",
        filter_query=f'email = "{db_client.sanitize_param(email)}"',
    )


async def _get_user_record(user_id: str) -> dict:
    try:
        return await db_client.get_record(collection="users", record_id=user_id)
    except db_client.RecordNotFoundError as e:
        raise NotFoundError("User not found") from e


async def register(*, payload: RegisterRequest) -> AuthResult:
    """Register a new user and issue an access token.

    Args:
        payload: Validated registration data (email already normalized)

    Returns:
        AuthResult with the new user and token

    Raises:
        ConflictError: If the email is already registered
        db_client.DatabaseError: If database operation fails
    """
    with span("user_service.register"):
        if await _find_by_email(payload.email):
            log_event(logger, "Registration with existing email rejected", user_id=None, level=logging.WARNING)
            raise ConflictError("User already exists")

        record = await db_client.create_record(
            collection="users",
            data={
                "name": payload.name,
                "email": payload.email,
                "password": hash_password(payload.password),
            },
        )
        user = User.model_validate(record)
        log_event(logger, "Registered user", user_id=user.id)
        return AuthResult(token=issue_access_token(user_id=user.id), user=user)


async def login(*, payload: LoginRequest) -> AuthResult:
    """Authenticate by email and password.

    Raises:
        InvalidCredentialsError: If the email is unknown or the password is wrong
    """
    with span("user_service.login"):
        record = await _find_by_email(payload.email)
        if not record or not verify_password(payload.password, record["password"]):
            log_event(logger, "Failed login attempt", user_id=None)
            raise InvalidCredentialsError

        user = User.model_validate(record)
        log_event(logger, "User logged in", user_id=user.id)
        return AuthResult(token=issue_access_token(user_id=user.id), user=user)


async def get_user(*, user_id: str) -> User:
    """Get user by ID.

    Raises:
        NotFoundError: If user not found
    """
    return User.model_validate(await _get_user_record(user_id))


async def ensure_user_exists(*, user_id: str) -> None:
    await _get_user_record(user_id)


async def update_user(*, user_id: str, payload: UserUpdate, avatar: UploadedFile | None = None) -> User:
    """Update profile fields and optionally replace the avatar.

    The previous avatar is removed best-effort once the record points at the new one.

    Raises:
        NotFoundError: If user not found
        ConflictError: If the new email belongs to another user
        ValidationFailedError: If the avatar file is not acceptable
    """
    with span("user_service.update_user"):
        record = await _get_user_record(user_id)
        updates = payload.model_dump(exclude_none=True)

        if "email" in updates and updates["email"] != record["email"]:
            existing = await _find_by_email(updates["email"])
            if existing and existing["id"] != user_id:
                raise ConflictError("Email already exists")

        if avatar is not None:
            updates["avatar"] = await storage_client.upload(avatar, folder=AVATAR_FOLDER)

        if not updates:
            return User.model_validate(record)

        updated = await db_client.update_record(collection="users", record_id=user_id, data=updates)
        if avatar is not None and record.get("avatar"):
            await _remove_asset(record["avatar"], user_id=user_id)
        log_event(logger, "Updated user", user_id=user_id, fields=sorted(updates))
        return User.model_validate(updated)


async def update_password(*, user_id: str, payload: PasswordUpdate) -> None:
    """Change the password after verifying the current one.

    Raises:
        NotFoundError: If user not found
        InvalidCredentialsError: If the current password is wrong
        ValidationFailedError: If the new password equals the current one
    """
    with span("user_service.update_password"):
        record = await _get_user_record(user_id)
        if not verify_password(payload.current_password, record["password"]):
            raise InvalidCredentialsError("Current password is incorrect")
        if payload.new_password == payload.current_password:
            raise ValidationFailedError("New password must be different from current password")

        await db_client.update_record(
            collection="users",
            record_id=user_id,
            data={"password": hash_password(payload.new_password)},
        )
        log_event(logger, "Updated password", user_id=user_id)


async def delete_user(*, user_id: str) -> None:
    """Delete a user account.

    Tasks, categories and notifications of the user are left in place.

    Raises:
        NotFoundError: If user not found
    """
    with span("user_service.delete_user"):
        record = await _get_user_record(user_id)
        if record.get("avatar"):
            await _remove_asset(record["avatar"], user_id=user_id)

        await db_client.delete_record(collection="users", record_id=user_id)
        log_event(logger, "Deleted user", user_id=user_id)


async def _remove_asset(url: str, *, user_id: str) -> None:
    try:
        await storage_client.remove_by_url(url)
    except StorageError as e:
        log_event(logger, "Failed to remove avatar", user_id=user_id, level=logging.WARNING, error=str(e))

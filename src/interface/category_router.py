"""Category endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from src.domain.create_models import CategoryCreate
from src.interface.dependencies import CurrentUserId
from src.interface.responses import dump, success_response
from src.services import category_service


router = APIRouter(prefix="/category", tags=["category"])


@router.post("/create-category")
async def create_category(payload: CategoryCreate, user_id: CurrentUserId) -> JSONResponse:
    category = await category_service.create_category(name=payload.name, user_id=user_id)
    return success_response(
        {"category": dump(category)},
        message="Category created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/get-all-categories")
async def get_all_categories(user_id: CurrentUserId) -> JSONResponse:
    categories = await category_service.list_categories(user_id=user_id)
    return success_response({"categories": dump(categories)})


@router.put("/update-category/{category_id}")
async def update_category(category_id: str, payload: CategoryCreate, user_id: CurrentUserId) -> JSONResponse:
    category = await category_service.update_category(category_id=category_id, name=payload.name, user_id=user_id)
    return success_response({"category": dump(category)}, message="Category updated successfully")


@router.delete("/delete-category/{category_id}")
async def delete_category(category_id: str, user_id: CurrentUserId) -> JSONResponse:
    await category_service.delete_category(category_id=category_id, user_id=user_id)
    return success_response(message="Category deleted successfully")

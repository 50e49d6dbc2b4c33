"""
User/catalog API endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from src.app_layer.dependencies import get_data_provider
from src.app_layer.schemas import UserDetail, UserSummary
from src.data_layer.mock_data_loader import DataProvider

router = APIRouter()


@router.get("/", response_model=List[UserSummary])
async def list_users(
    domain: Optional[str] = None,
    provider: DataProvider = Depends(get_data_provider),
):
    """List users, optionally filtered by domain."""
    users = provider.get_users_by_domain(domain) if domain else provider.get_all_users()
    return [UserSummary(id=u.id, name=u.name, avatar=u.avatar, domain=u.domain) for u in users]


@router.get("/domains", response_model=List[str])
async def list_domains(provider: DataProvider = Depends(get_data_provider)):
    """Available domains."""
    return provider.get_available_domains()


@router.get("/{user_id}", response_model=UserDetail)
async def get_user(user_id: str, provider: DataProvider = Depends(get_data_provider)):
    user = provider.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    return UserDetail.from_user(user)

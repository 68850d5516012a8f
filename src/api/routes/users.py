"""
User management API routes

Handlers only delegate to UsersService; every failure propagates to the
centralized error handlers in utils.error_handling.
"""

import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends, Request

from models.user import UserRecord
from services.users_service import UsersService

router = APIRouter()
logger = logging.getLogger(__name__)

def get_users_service(request: Request) -> UsersService:
    """Users service attached to the application at startup"""
    return request.app.state.users_service

@router.get("", response_model=List[UserRecord], response_model_exclude_none=True)
async def list_users(users_service: UsersService = Depends(get_users_service)):
    """Return all users"""
    return await users_service.find_all()

@router.post("", status_code=201, response_model=UserRecord, response_model_exclude_none=True)
async def create_user(
    payload: Optional[Dict[str, Any]] = Body(None),
    users_service: UsersService = Depends(get_users_service)
):
    """Create a new user from { name, email, age?, city? }"""
    return await users_service.create(payload or {})

@router.put("/{user_id}", response_model=UserRecord, response_model_exclude_none=True)
async def update_user(
    user_id: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    users_service: UsersService = Depends(get_users_service)
):
    """Apply a partial update to a user"""
    return await users_service.update_by_id(user_id, payload or {})

@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    users_service: UsersService = Depends(get_users_service)
):
    """Delete a user permanently"""
    deleted_id = await users_service.delete_by_id(user_id)
    return {"message": "User deleted", "id": str(deleted_id)}

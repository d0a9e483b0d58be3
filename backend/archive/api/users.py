"""Placeholder user endpoint; accounts are not implemented yet."""
from fastapi import APIRouter

router = APIRouter(prefix="/users", tags=["users"])


@router.post("")
async def create_user():
    return "User created successfully"

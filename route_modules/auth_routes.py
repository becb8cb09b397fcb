"""
Auth Routes - login and the current user's profile.
"""
from fastapi import APIRouter, Depends
from auth import IdentityProvider, get_identity_provider, get_current_user
from models import CurrentUser, LoginRequest

router = APIRouter()


@router.post("/api/auth/login")
def login(
    body: LoginRequest,
    identity: IdentityProvider = Depends(get_identity_provider)
):
    """Exchange email and password for a bearer token."""
    return {"success": True, "data": identity.authenticate(body.email, body.password)}


@router.get("/api/auth/me")
async def me(user: CurrentUser = Depends(get_current_user)):
    return {"success": True, "data": user.model_dump()}

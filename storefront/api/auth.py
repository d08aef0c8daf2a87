# storefront/api/auth.py
from fastapi import APIRouter, Depends
from .dependencies import get_auth_service
from .schemas import LoginRequest, RegisterRequest, VerifyRequest
from ..services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register")
async def register(body: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    """Send a registration code to the email"""
    await auth.start_registration(body.email, body.full_name, body.phone)
    return {"success": True, "message": "OTP sent to your email"}

@router.post("/login")
async def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    await auth.start_login(body.email)
    return {"success": True, "message": "OTP sent to your email"}

@router.post("/verify")
async def verify(body: VerifyRequest, auth: AuthService = Depends(get_auth_service)):
    """Exchange a valid code for an access token"""
    result = await auth.verify(body.email, body.purpose, body.otp)
    return {"success": True, "data": {"token": result.token, "user": result.user}}

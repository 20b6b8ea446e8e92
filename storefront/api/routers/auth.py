# storefront/api/routers/auth.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront.api.deps import (
    client_ip,
    get_current_user,
    get_rate_limiter,
    request_session_id,
)
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import RateLimited
from storefront.domain.schemas import (
    ChangePasswordIn,
    ForgotPasswordIn,
    LoginIn,
    PasswordIn,
    ProfileUpdateIn,
    RegisterIn,
    ResetPasswordIn,
    TokenIn,
)
from storefront.services.auth_service import AuthService, user_to_dict
from storefront.services.rate_limiter import RateLimiter
from storefront.utils.settings import DEBUG
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def get_service(db: Session):
    return AuthService(db)


def _login_allowed(limiter: RateLimiter, key: str) -> bool:
    try:
        return limiter.hit(key)
    except Exception:
        # limiter failures never block a login
        logger.exception("Login rate limiter failed, allowing attempt")
        return True


@router.post("/register", status_code=201)
def register(payload: RegisterIn, request: Request, db: Session = Depends(get_db)):
    data = get_service(db).register(payload, request_session_id(request))
    return {"success": True, "message": "User registered successfully", "data": data}


@router.post("/login")
def login(
    payload: LoginIn,
    request: Request,
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    ip = client_ip(request)
    if not _login_allowed(limiter, ip):
        logger.warning(f"Too many login attempts from {ip}")
        raise RateLimited("Too many login attempts. Try again in 15 minutes")

    data = get_service(db).login(payload, request_session_id(request))

    try:
        limiter.reset(ip)
    except Exception:
        logger.exception(f"Could not reset login attempts of {ip}")

    return {"success": True, "message": "Login successful", "data": data}


@router.post("/logout")
def logout(user: UserModel = Depends(get_current_user)):
    # tokens are stateless; the client drops it
    return {"success": True, "message": "Logout successful"}


@router.get("/me")
def me(user: UserModel = Depends(get_current_user)):
    return {"success": True, "data": {"user": user_to_dict(user)}}


@router.put("/profile")
def update_profile(
    payload: ProfileUpdateIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = get_service(db).update_profile(user, payload)
    return {"success": True, "message": "Profile updated successfully", "data": {"user": data}}


@router.put("/change-password")
def change_password(
    payload: ChangePasswordIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_service(db).change_password(user, payload.current_password, payload.new_password)
    return {"success": True, "message": "Password changed successfully"}


@router.delete("/account")
def deactivate_account(
    payload: PasswordIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_service(db).deactivate(user, payload.password)
    return {"success": True, "message": "Account deactivated successfully"}


@router.post("/verify-token")
def verify_token(payload: TokenIn, db: Session = Depends(get_db)):
    data = get_service(db).verify_token(payload.token)
    return {"success": True, "message": "Valid token", "data": {"user": data}}


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordIn, db: Session = Depends(get_db)):
    token = get_service(db).forgot_password(payload.email)

    body = {"success": True, "message": "If the e-mail exists, you will receive a recovery link"}
    if DEBUG and token:
        body["reset_token"] = token
    return body


@router.get("/verify-reset-token/{token}")
def verify_reset_token(token: str, db: Session = Depends(get_db)):
    data = get_service(db).verify_reset_token(token)
    return {"success": True, "message": "Valid token", "data": data}


@router.post("/reset-password")
def reset_password(payload: ResetPasswordIn, db: Session = Depends(get_db)):
    get_service(db).reset_password(payload.token, payload.password)
    return {"success": True, "message": "Password updated successfully"}

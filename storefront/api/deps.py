# storefront/api/deps.py
from functools import lru_cache

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import Forbidden, Unauthorized
from storefront.domain.identity import Identity, SessionIdentity, UserIdentity, new_session_id
from storefront.services.auth_service import AuthService
from storefront.services.lock_service import LockService
from storefront.services.rate_limiter import RateLimiter, build_rate_limiter
from storefront.utils.settings import TRUST_PROXY_HEADERS

SESSION_HEADER = "X-Session-ID"


@lru_cache
def get_lock_service() -> LockService:
    return LockService()


@lru_cache
def get_rate_limiter() -> RateLimiter:
    return build_rate_limiter()


def bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def request_session_id(request: Request) -> str | None:
    return request.headers.get(SESSION_HEADER) or request.query_params.get("session_id")


def client_ip(request: Request, trust_proxy: bool = TRUST_PROXY_HEADERS) -> str:
    """X-Forwarded-For is client-controlled; it is only read behind a trusted proxy."""
    forwarded = request.headers.get("X-Forwarded-For") if trust_proxy else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> UserModel | None:
    """Invalid or expired tokens degrade to anonymous."""
    token = bearer_token(request)
    if not token:
        return None
    return AuthService(db).authenticate_token(token)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> UserModel:
    token = bearer_token(request)
    if not token:
        raise Unauthorized("Access token required")

    user = AuthService(db).authenticate_token(token)
    if not user:
        raise Forbidden("Invalid or expired token")
    return user


def get_admin_user(user: UserModel = Depends(get_current_user)) -> UserModel:
    if user.role != "admin":
        raise Forbidden("Admin access required")
    return user


def get_identity(
    request: Request,
    response: Response,
    user: UserModel | None = Depends(get_optional_user),
) -> Identity:
    """
    user -> UserIdentity (session token ignored)
    session header/query -> SessionIdentity
    neither -> a fresh session id, echoed in the X-Session-ID header
    """
    if user is not None:
        return UserIdentity(user.id)

    session_id = request_session_id(request)
    if not session_id:
        session_id = new_session_id()
        response.headers[SESSION_HEADER] = session_id
    return SessionIdentity(session_id)

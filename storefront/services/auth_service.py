# storefront/services/auth_service.py
from datetime import datetime, timezone, timedelta
from typing import Dict, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.user import UserModel
from storefront.domain.errors import Conflict, Unauthorized, ValidationError
from storefront.domain.schemas import RegisterIn, LoginIn, ProfileUpdateIn
from storefront.repos.user_repo import UserRepo
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.utils.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    new_reset_token,
    verify_password,
)
from storefront.utils.settings import RESET_TOKEN_EXPIRE_MINUTES
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def user_to_dict(user: UserModel) -> Dict[str, Any]:
    """Public view of a user; never includes the password hash or reset token."""
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "role": user.role,
        "is_active": user.is_active,
        "last_login": user.last_login,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


class AuthService:
    def __init__(self, db: Session, notifications: NotificationService | None = None):
        self.db = db
        self.repo = UserRepo(db)
        self.cart = CartService(db)
        self.notifications = notifications or NotificationService()

    @staticmethod
    def issue_token(user: UserModel) -> str:
        return create_access_token({"id": user.id, "email": user.email, "role": user.role})

    def authenticate_token(self, token: str) -> UserModel | None:
        """Resolves a bearer token to an active user, or None."""
        claims = decode_access_token(token)
        if not claims or "id" not in claims:
            return None

        user = self.repo.get_user(claims["id"])
        if not user or not user.is_active:
            return None
        return user

    def _migrate_cart(self, session_id: str | None, user_id: int) -> None:
        if not session_id:
            return
        try:
            self.cart.migrate_session_cart(session_id, user_id)
        except SQLAlchemyError:
            # login/registration never fails because of the cart
            self.db.rollback()
            logger.exception(f"Cart migration from session {session_id} to user {user_id} failed")

    # account

    def register(self, payload: RegisterIn, session_id: str | None = None) -> Dict[str, Any]:
        if self.repo.get_by_email(payload.email):
            raise Conflict("This e-mail is already registered")

        user = self.repo.create_user(
            UserModel(
                email=payload.email.strip().lower(),
                password_hash=hash_password(payload.password),
                first_name=payload.first_name,
                last_name=payload.last_name,
                phone=payload.phone,
            )
        )
        if user is None:
            # lost a race with a concurrent registration
            raise Conflict("This e-mail is already registered")
        logger.info(f"User {user.id} registered")

        self._migrate_cart(payload.session_id or session_id, user.id)
        return {"user": user_to_dict(user), "token": self.issue_token(user)}

    def login(self, payload: LoginIn, session_id: str | None = None) -> Dict[str, Any]:
        user = self.repo.get_by_email(payload.email)
        if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
            raise Unauthorized("Invalid credentials")

        user = self.repo.update_user(user, {"last_login": datetime.now(timezone.utc)})
        logger.info(f"User {user.id} logged in")

        self._migrate_cart(payload.session_id or session_id, user.id)
        return {"user": user_to_dict(user), "token": self.issue_token(user)}

    def verify_token(self, token: str) -> Dict[str, Any]:
        user = self.authenticate_token(token)
        if not user:
            raise Unauthorized("Invalid or expired token")
        return user_to_dict(user)

    def update_profile(self, user: UserModel, payload: ProfileUpdateIn) -> Dict[str, Any]:
        data = payload.model_dump(exclude_unset=True)
        if not data:
            raise ValidationError("No valid fields to update")

        if data.get("first_name") is not None:
            data["first_name"] = data["first_name"].strip()
        if "last_name" in data:
            data["last_name"] = (data["last_name"] or "").strip() or None
        if "phone" in data:
            data["phone"] = (data["phone"] or "").strip() or None
        if data.get("first_name") is None:
            data.pop("first_name", None)

        return user_to_dict(self.repo.update_user(user, data))

    def change_password(self, user: UserModel, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")

        self.repo.update_user(user, {"password_hash": hash_password(new_password)})
        logger.info(f"User {user.id} changed password")

    def deactivate(self, user: UserModel, password: str) -> None:
        if not verify_password(password, user.password_hash):
            raise Unauthorized("Incorrect password")

        self.repo.update_user(user, {"is_active": False})
        logger.info(f"User {user.id} deactivated the account")

    # password reset

    def forgot_password(self, email: str) -> str | None:
        """
        Issues a reset token and enqueues the e-mail. Returns the token, or
        None for unknown addresses; the caller must not reveal which.
        """
        user = self.repo.get_by_email(email)
        if not user or not user.is_active:
            logger.info("Password reset requested for an unknown address")
            return None

        token = new_reset_token()
        expires = datetime.now(timezone.utc) + timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES)
        self.repo.update_user(user, {"reset_token": token, "reset_token_expires": expires})

        self.notifications.send_password_reset(user.email, token)
        return token

    def verify_reset_token(self, token: str) -> Dict[str, Any]:
        user = self.repo.get_by_reset_token(token, datetime.now(timezone.utc))
        if not user:
            raise ValidationError("Invalid or expired token")
        return {"email": user.email}

    def reset_password(self, token: str, password: str) -> None:
        user = self.repo.get_by_reset_token(token, datetime.now(timezone.utc))
        if not user:
            raise ValidationError("Invalid or expired token")

        self.repo.update_user(user, {
            "password_hash": hash_password(password),
            "reset_token": None,
            "reset_token_expires": None,
        })
        logger.info(f"User {user.id} reset the password")

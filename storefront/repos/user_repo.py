# storefront/repos/user_repo.py
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.user import UserModel


class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> UserModel | None:
        return self.db.get(UserModel, user_id)

    def get_by_email(self, email: str) -> UserModel | None:
        stmt = select(UserModel).where(func.lower(UserModel.email) == email.strip().lower())
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_reset_token(self, token: str, now: datetime) -> UserModel | None:
        stmt = select(UserModel).where(
            UserModel.reset_token == token,
            UserModel.reset_token_expires > now,
            UserModel.is_active.is_(True),
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create_user(self, user: UserModel) -> UserModel | None:
        """Returns None when the e-mail is already taken."""
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return None
        self.db.refresh(user)
        return user

    def update_user(self, user: UserModel, data: dict) -> UserModel:
        for key, value in data.items():
            setattr(user, key, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    def search(
        self,
        limit: int,
        offset: int,
        search: str | None = None,
        role: str | None = None,
        is_active: bool | None = None,
    ) -> Tuple[List[UserModel], int]:
        stmt = select(UserModel)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    UserModel.email.ilike(pattern),
                    UserModel.first_name.ilike(pattern),
                    UserModel.last_name.ilike(pattern),
                )
            )
        if role:
            stmt = stmt.where(UserModel.role == role)
        if is_active is not None:
            stmt = stmt.where(UserModel.is_active.is_(is_active))

        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = self.db.execute(
            stmt.order_by(UserModel.created_at.desc(), UserModel.id.desc()).limit(limit).offset(offset)
        ).scalars().all()
        return list(rows), total

    def created_since(self, since: datetime) -> List[UserModel]:
        stmt = select(UserModel).where(UserModel.created_at >= since)
        return list(self.db.execute(stmt).scalars().all())

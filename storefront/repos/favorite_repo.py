# storefront/repos/favorite_repo.py
from typing import List

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.favorite import FavoriteModel


class FavoriteRepo:
    def __init__(self, db: Session):
        self.db = db

    def add(self, favorite: FavoriteModel) -> FavoriteModel | None:
        """Returns None when the (user, product) pair already exists."""
        self.db.add(favorite)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return None
        self.db.refresh(favorite)
        return favorite

    def remove(self, user_id: int, product_id: int) -> int:
        result = self.db.execute(
            delete(FavoriteModel).where(
                FavoriteModel.user_id == user_id,
                FavoriteModel.product_id == product_id,
            )
        )
        self.db.commit()
        return result.rowcount

    def list_for_user(self, user_id: int) -> List[FavoriteModel]:
        stmt = (
            select(FavoriteModel)
            .where(FavoriteModel.user_id == user_id)
            .order_by(FavoriteModel.created_at.desc(), FavoriteModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_for_user(self, user_id: int) -> int:
        stmt = select(func.count(FavoriteModel.id)).where(FavoriteModel.user_id == user_id)
        return self.db.execute(stmt).scalar_one()

    def exists(self, user_id: int, product_id: int) -> bool:
        stmt = select(FavoriteModel.id).where(
            FavoriteModel.user_id == user_id,
            FavoriteModel.product_id == product_id,
        )
        return self.db.execute(stmt).first() is not None

# storefront/repos/product_repo.py
from datetime import datetime, timezone
from typing import List, Tuple

from sqlalchemy import select, update, func, or_
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel

SORTABLE = {"created_at", "title", "price", "stock", "category", "brand"}


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_active(self, product_id: int) -> ProductModel | None:
        stmt = select(ProductModel).where(
            ProductModel.id == product_id,
            ProductModel.is_active.is_(True),
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_category(self, category: str, limit: int, offset: int = 0) -> Tuple[List[ProductModel], int]:
        base = select(ProductModel).where(
            ProductModel.is_active.is_(True),
            func.lower(ProductModel.category) == category.lower(),
        )
        total = self.db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
        rows = self.db.execute(
            base.order_by(ProductModel.created_at.desc(), ProductModel.id.desc()).limit(limit).offset(offset)
        ).scalars().all()
        return list(rows), total

    def category_counts(self) -> List[Tuple[str, int]]:
        stmt = (
            select(ProductModel.category, func.count(ProductModel.id))
            .where(ProductModel.is_active.is_(True), ProductModel.category.is_not(None))
            .group_by(ProductModel.category)
            .order_by(ProductModel.category)
        )
        return [(name, count) for name, count in self.db.execute(stmt).all()]

    def search(
        self,
        limit: int,
        offset: int,
        category: str | None = None,
        brand: str | None = None,
        search: str | None = None,
        in_stock: bool | None = None,
        sort_by: str = "created_at",
        ascending: bool = False,
    ) -> Tuple[List[ProductModel], int]:
        stmt = select(ProductModel)
        if category:
            stmt = stmt.where(ProductModel.category == category)
        if brand:
            stmt = stmt.where(ProductModel.brand == brand)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(ProductModel.title.ilike(pattern), ProductModel.description.ilike(pattern)))
        if in_stock is True:
            stmt = stmt.where(ProductModel.stock > 0)
        elif in_stock is False:
            stmt = stmt.where(ProductModel.stock == 0)

        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

        column = getattr(ProductModel, sort_by if sort_by in SORTABLE else "created_at")
        stmt = stmt.order_by(column.asc() if ascending else column.desc(), ProductModel.id.desc())
        rows = self.db.execute(stmt.limit(limit).offset(offset)).scalars().all()
        return list(rows), total

    def list_all(self) -> List[ProductModel]:
        return list(self.db.execute(select(ProductModel)).scalars().all())

    def create(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def update(self, product: ProductModel, data: dict) -> ProductModel:
        for key, value in data.items():
            setattr(product, key, value)
        self.db.commit()
        self.db.refresh(product)
        return product

    def delete(self, product: ProductModel) -> None:
        self.db.delete(product)
        self.db.commit()

    def decrement_stock(self, product_id: int, quantity: int) -> int:
        """
        Atomic conditional decrement:
        UPDATE products SET stock = stock - q WHERE id = ? AND stock >= q
        Returns affected rows (0 means the stock was no longer sufficient).
        """
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock >= quantity)
            .values(
                stock=ProductModel.stock - quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount

    def get_fresh(self, product_id: int) -> ProductModel | None:
        """Re-reads the row even if it is already in the session identity map."""
        stmt = (
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

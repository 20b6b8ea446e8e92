# storefront/services/catalog_service.py
import re
from typing import Dict, Any, List

from sqlalchemy.orm import Session

from storefront.repos.product_repo import ProductRepo
from storefront.services.cart_service import product_to_dict

FEATURED_CATEGORIES = 6


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


class CatalogService:
    """Category browsing. Categories are the distinct `product.category` values of active products."""

    def __init__(self, db: Session):
        self.products = ProductRepo(db)

    def categories(self) -> List[Dict[str, Any]]:
        return [
            {"name": name, "slug": slugify(name), "count": count}
            for name, count in self.products.category_counts()
        ]

    def featured_categories(self) -> List[Dict[str, Any]]:
        ranked = sorted(self.categories(), key=lambda c: c["count"], reverse=True)
        return [dict(c, is_featured=True) for c in ranked[:FEATURED_CATEGORIES]]

    def products_in_category(self, category: str, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        # accept slugs as well as names
        name = category.replace("-", " ")
        rows, total = self.products.list_by_category(name, limit, offset)
        if not rows and total == 0 and name != category:
            rows, total = self.products.list_by_category(category, limit, offset)

        return {
            "products": [product_to_dict(p) for p in rows],
            "pagination": {
                "total": total,
                "count": len(rows),
                "offset": offset,
                "limit": limit,
            },
            "category": {
                "name": category,
                "display_name": name[:1].upper() + name[1:],
            },
        }

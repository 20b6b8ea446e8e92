# storefront/services/favorite_service.py
from typing import Dict, Any, List

from sqlalchemy.orm import Session

from storefront.data.models.favorite import FavoriteModel
from storefront.domain.errors import Conflict, NotFound
from storefront.repos.favorite_repo import FavoriteRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.cart_service import product_to_dict
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class FavoriteService:
    def __init__(self, db: Session):
        self.repo = FavoriteRepo(db)
        self.products = ProductRepo(db)

    def list_favorites(self, user_id: int) -> List[Dict[str, Any]]:
        return [
            {
                "id": fav.id,
                "product_id": fav.product_id,
                "created_at": fav.created_at,
                "product": product_to_dict(self.products.get(fav.product_id)),
            }
            for fav in self.repo.list_for_user(user_id)
        ]

    def count(self, user_id: int) -> int:
        return self.repo.count_for_user(user_id)

    def add(self, user_id: int, product_id: int) -> Dict[str, Any]:
        if not self.products.get(product_id):
            raise NotFound("Product not found")

        fav = self.repo.add(FavoriteModel(user_id=user_id, product_id=product_id))
        if fav is None:
            raise Conflict("Product is already in favorites")

        logger.info(f"User {user_id} added product {product_id} to favorites")
        return {"id": fav.id, "user_id": fav.user_id, "product_id": fav.product_id, "created_at": fav.created_at}

    def remove(self, user_id: int, product_id: int) -> None:
        if self.repo.remove(user_id, product_id) == 0:
            raise NotFound("Product is not in favorites")
        logger.info(f"User {user_id} removed product {product_id} from favorites")

    def is_favorite(self, user_id: int, product_id: int) -> bool:
        return self.repo.exists(user_id, product_id)

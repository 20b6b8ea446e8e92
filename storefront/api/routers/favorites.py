# storefront/api/routers/favorites.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.services.favorite_service import FavoriteService

router = APIRouter(prefix="/api/favorites", tags=["favorites"])


@router.get("")
def list_favorites(user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "data": FavoriteService(db).list_favorites(user.id)}


@router.get("/count")
def count_favorites(user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "count": FavoriteService(db).count(user.id)}


@router.get("/check/{product_id}")
def check_favorite(product_id: int, user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "is_favorite": FavoriteService(db).is_favorite(user.id, product_id)}


@router.post("/{product_id}", status_code=201)
def add_favorite(product_id: int, user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    data = FavoriteService(db).add(user.id, product_id)
    return {"success": True, "message": "Product added to favorites", "data": data}


@router.delete("/{product_id}")
def remove_favorite(product_id: int, user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    FavoriteService(db).remove(user.id, product_id)
    return {"success": True, "message": "Product removed from favorites"}

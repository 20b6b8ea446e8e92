# storefront/api/routers/categories.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.services.catalog_service import CatalogService

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("")
def list_categories(db: Session = Depends(get_db)):
    return {"success": True, "data": CatalogService(db).categories()}


@router.get("/featured")
def featured_categories(db: Session = Depends(get_db)):
    return {"success": True, "data": CatalogService(db).featured_categories()}


@router.get("/{category}/products")
def category_products(
    category: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    data = CatalogService(db).products_in_category(category, limit, offset)
    return {"success": True, **data}

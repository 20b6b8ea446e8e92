# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import SessionLocal
from storefront.data.models.product import ProductModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    {
        "title": "MacBook Pro 14",
        "description": "Apple laptop with M3 chip, 16GB RAM and 512GB SSD",
        "brand": "Apple",
        "category": "laptops",
        "image": "https://example.com/images/macbook-pro-14.jpg",
        "price": Decimal("12999.00"),
        "original_price": Decimal("14999.00"),
        "stock": 10,
        "is_featured": True,
    },
    {
        "title": "Galaxy S24",
        "description": "Samsung smartphone with 256GB storage",
        "brand": "Samsung",
        "category": "smartphones",
        "image": "https://example.com/images/galaxy-s24.jpg",
        "price": Decimal("4499.00"),
        "original_price": None,
        "stock": 25,
        "is_featured": True,
    },
    {
        "title": "WH-1000XM5",
        "description": "Sony wireless noise cancelling headphones",
        "brand": "Sony",
        "category": "audio",
        "image": "https://example.com/images/wh-1000xm5.jpg",
        "price": Decimal("1899.00"),
        "original_price": Decimal("2299.00"),
        "stock": 15,
        "is_featured": False,
    },
    {
        "title": "iPad Air",
        "description": "Apple tablet with 10.9 inch display and 128GB storage",
        "brand": "Apple",
        "category": "tablets",
        "image": "https://example.com/images/ipad-air.jpg",
        "price": Decimal("5499.00"),
        "original_price": None,
        "stock": 0,
        "is_featured": False,
    },
]


def seed():
    db = SessionLocal()
    try:
        # only seed an empty catalog
        if db.query(ProductModel).first():
            return
        db.add_all(ProductModel(**data) for data in DEMO_PRODUCTS)
        db.commit()
        logger.info(f"Seeded {len(DEMO_PRODUCTS)} demo products")
    finally:
        db.close()

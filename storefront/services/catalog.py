# storefront/services/catalog.py
from typing import Optional

from sqlalchemy.orm import Session

from storefront.models.category import Category
from storefront.models.product import Product


def find_product(db: Session, product_id) -> Optional[Product]:
    if product_id is None:
        return None
    return db.query(Product).filter(Product.id == product_id).first()


def find_category(db: Session, name: str) -> Optional[Category]:
    return db.query(Category).filter(Category.name == name).first()

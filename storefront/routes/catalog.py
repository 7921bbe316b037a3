# storefront/routes/catalog.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.cart import CartEntry
from storefront.models.category import Category
from storefront.models.product import Product
from storefront.models.users import User
from storefront.schemas import catalog as catalog_schemas
from storefront.services.catalog import find_category, find_product
from storefront.utils.audit import write_log, client_ip
from storefront.utils.tokenJWT import admin_required

router = APIRouter(tags=["Catalog"])


# =========================
# CATEGORIES
# =========================
@router.post("/categories", response_model=catalog_schemas.CategoryOut, status_code=status.HTTP_201_CREATED)
def add_category(
    payload: catalog_schemas.CategoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    name = payload.name.strip()
    if find_category(db, name):
        raise HTTPException(status_code=400, detail="Category already exists")

    category = Category(name=name, description=payload.description)
    db.add(category)
    db.commit()
    db.refresh(category)

    write_log(db, user_id=current_user.id, action="CATEGORY_CREATE", resource="categories",
              resource_id=category.id, ip=client_ip(request), meta={"name": category.name})
    return category


@router.get("/categories", response_model=List[catalog_schemas.CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return db.query(Category).order_by(Category.name).all()


# =========================
# PRODUCTS
# =========================
@router.post("/products", response_model=catalog_schemas.ProductOut, status_code=status.HTTP_201_CREATED)
def add_product(
    payload: catalog_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    if not find_category(db, payload.category):
        raise HTTPException(status_code=404, detail="Category not found")

    product = Product(**payload.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)

    write_log(db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products",
              resource_id=product.id, ip=client_ip(request), meta={"name": product.name, "price": product.price})
    return product


@router.get("/products", response_model=List[catalog_schemas.ProductOut])
def list_products(
    category: Optional[str] = Query(None, description="Filter by category name"),
    db: Session = Depends(get_db),
):
    query = db.query(Product)
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.id).all()


@router.get("/products/{product_id}", response_model=catalog_schemas.ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = find_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# Partial update; existing orders keep their own price snapshot
@router.put("/products/{product_id}", response_model=catalog_schemas.ProductOut)
def update_product(
    product_id: int,
    payload: catalog_schemas.ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    product = find_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("category") and not find_category(db, changes["category"]):
        raise HTTPException(status_code=404, detail="Category not found")

    for key, value in changes.items():
        setattr(product, key, value)
    db.commit()
    db.refresh(product)

    write_log(db, user_id=current_user.id, action="PRODUCT_UPDATE", resource="products",
              resource_id=product.id, ip=client_ip(request), meta={"fields": sorted(changes)})
    return product


@router.delete("/products/{product_id}")
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    product = find_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    pid = product.id
    # Cart lines cannot outlive the product they point at
    db.query(CartEntry).filter(CartEntry.product_id == pid).delete(synchronize_session=False)
    db.delete(product)
    db.commit()

    write_log(db, user_id=current_user.id, action="PRODUCT_DELETE", resource="products",
              resource_id=pid, ip=client_ip(request))
    return {"message": "Product deleted"}

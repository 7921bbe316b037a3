# storefront/routes/cart.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.cart import CartEntry
from storefront.models.users import User
from storefront.schemas.cart import CartAddItem, CartEntryOut, CartOut, CheckoutPayload
from storefront.schemas.order import OrderResponse
from storefront.services.catalog import find_product
from storefront.services.orders import Customer, checkout_cart
from storefront.utils.audit import write_log, client_ip
from storefront.utils.tokenJWT import get_current_user

router = APIRouter(prefix="/cart", tags=["Cart"])

def _entries(db: Session, user_id: int) -> List[CartEntry]:
    return db.query(CartEntry).filter(CartEntry.user_id == user_id).order_by(CartEntry.id).all()

def _cart_to_out(entries: List[CartEntry]) -> CartOut:
    items_out = []
    total = 0.0

    for it in entries:
        # Cart shows live prices; the order snapshots them at checkout
        unit_price = it.product.price if it.product else None
        line_total = round(unit_price * it.quantity, 2) if unit_price is not None else None
        if line_total is not None:
            total += line_total

        items_out.append(CartEntryOut(
            id=it.id,
            product_id=it.product_id,
            product_name=it.product_name,
            quantity=it.quantity,
            unit_price=unit_price,
            line_total=line_total,
        ))

    return CartOut(items=items_out, total=round(total, 2))

@router.get("", response_model=CartOut)
def get_cart(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _cart_to_out(_entries(db, current_user.id))

@router.post("", response_model=CartOut, status_code=status.HTTP_200_OK)
def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    product = find_product(db, payload.product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    item = db.query(CartEntry).filter(
        CartEntry.user_id == current_user.id, CartEntry.product_id == product.id
    ).first()

    if item:
        item.quantity += payload.quantity
    else:
        item = CartEntry(
            user_id=current_user.id,
            product_id=product.id,
            product_name=product.name,
            quantity=payload.quantity,
        )
        db.add(item)

    db.commit()

    out = _cart_to_out(_entries(db, current_user.id))
    write_log(
        db,
        user_id=current_user.id,
        action="CART_ADD",
        resource="cart",
        ip=client_ip(request),
        meta={"product_id": product.id, "quantity": payload.quantity, "cart_items": len(out.items)},
    )
    return out

@router.delete("/{product_id}", response_model=CartOut)
def remove_from_cart(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    item = db.query(CartEntry).filter(
        CartEntry.user_id == current_user.id, CartEntry.product_id == product_id
    ).first()
    if not item:
        raise HTTPException(status_code=404, detail="Product not found in cart")

    db.delete(item)
    db.commit()

    out = _cart_to_out(_entries(db, current_user.id))
    write_log(
        db,
        user_id=current_user.id,
        action="CART_REMOVE",
        resource="cart",
        ip=client_ip(request),
        meta={"product_id": product_id, "cart_items": len(out.items)},
    )
    return out

# Place one order per cart line and empty the cart in the same transaction
@router.post("/checkout", response_model=List[OrderResponse], status_code=status.HTTP_201_CREATED)
def checkout(
    payload: CheckoutPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    customer = Customer(
        user_id=current_user.id,
        firstname=payload.firstname or current_user.first_name or "",
        lastname=payload.lastname or current_user.last_name or "",
        phone=payload.phone,
    )
    orders = checkout_cart(db, customer, payment_method=payload.payment_method, address=payload.address)

    write_log(
        db,
        user_id=current_user.id,
        action="CART_CHECKOUT",
        resource="orders",
        ip=client_ip(request),
        meta={"order_ids": [o.id for o in orders], "total": round(sum(o.price for o in orders), 2)},
    )
    return orders

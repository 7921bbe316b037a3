# storefront/routes/payments.py
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.exceptions import PaymentNotFound
from storefront.models.users import User
from storefront.schemas.order import PaymentResponse
from storefront.services import orders as order_service
from storefront.utils.tokenJWT import get_current_user, admin_required

# Read-only: payments only change through the order workflow
router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("", response_model=List[PaymentResponse])
def list_payments(
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    return order_service.list_payments(db)


@router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    payment = order_service.get_payment(db, payment_id)
    if payment.user_id != current_user.id and not current_user.is_admin:
        raise PaymentNotFound(f"Payment {payment_id} not found")
    return payment

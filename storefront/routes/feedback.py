# storefront/routes/feedback.py
from typing import List
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.feedback import Feedback
from storefront.models.users import User
from storefront.schemas.feedback import FeedbackCreate, FeedbackOut
from storefront.utils.audit import write_log, client_ip
from storefront.utils.tokenJWT import get_current_user, admin_required

router = APIRouter(prefix="/feedback", tags=["Feedback"])


@router.post("", response_model=FeedbackOut, status_code=status.HTTP_201_CREATED)
def submit_feedback(
    payload: FeedbackCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entry = Feedback(user_id=current_user.id, message=payload.message, rating=payload.rating)
    db.add(entry)
    db.commit()
    db.refresh(entry)

    write_log(db, user_id=current_user.id, action="FEEDBACK_CREATE", resource="feedback",
              resource_id=entry.id, ip=client_ip(request), meta={"rating": entry.rating})
    return entry


@router.get("", response_model=List[FeedbackOut])
def list_feedback(
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    return db.query(Feedback).order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()

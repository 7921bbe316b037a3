# storefront/models/feedback.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint, func
from storefront.database import Base

# Free-text customer feedback with an optional star rating
class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    message = Column(String, nullable=False)
    rating = Column(Integer, CheckConstraint("rating >= 1 AND rating <= 5"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

# storefront/models/log.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, func
from storefront.database import Base

# Audit trail entry: who did what to which resource, and whether it worked
class Log(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    action = Column(String(50), index=True)
    resource = Column(String(50), index=True)
    resource_id = Column(Integer, nullable=True)
    status = Column(String(20), index=True)
    ip = Column(String(64), nullable=True)

    # Free-form context (old/new status, amounts, reasons)
    meta = Column(JSON, nullable=True)

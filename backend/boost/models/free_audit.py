from sqlalchemy import Column, String, Text, JSON, DateTime, ForeignKey, Uuid
import uuid
from ..core.db import Base, utcnow


class FreeAudit(Base):
    __tablename__ = "free_audits"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False)  # normalized
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    business_id = Column(Uuid, ForeignKey("businesses.id"), nullable=True)
    input = Column(JSON, nullable=False)
    output = Column(Text, nullable=True)
    structured_output = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="pending")
    source = Column(String, nullable=False, default="organic")  # organic | abandoned_checkout
    created_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

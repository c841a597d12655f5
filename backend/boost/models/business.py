from sqlalchemy import Column, String, JSON, DateTime, ForeignKey, Uuid
import uuid
from ..core.db import Base, utcnow

DEFAULT_BUSINESS_NAME = "My Business"


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), index=True, nullable=False)
    name = Column(String, nullable=False, default=DEFAULT_BUSINESS_NAME)
    # Accumulated profile: product, traction history, tactics, competitors, ...
    context = Column(JSON, nullable=True)
    context_updated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

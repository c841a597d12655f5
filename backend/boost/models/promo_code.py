from sqlalchemy import Column, String, Integer, DateTime, Uuid
import uuid
from ..core.db import Base, utcnow


class PromoCode(Base):
    """A redeemable code for free strategy runs. Stored uppercase."""

    __tablename__ = "promo_codes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String, unique=True, index=True, nullable=False)
    credits = Column(Integer, nullable=True)  # null means 1
    max_uses = Column(Integer, nullable=True)  # null means unlimited
    used_count = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Uuid
import uuid
from ..core.db import Base, utcnow


class RunCredit(Base):
    """One grant of run credits. Balances are derived, never stored."""

    __tablename__ = "run_credits"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), index=True, nullable=False)
    credits = Column(Integer, nullable=False, default=1)
    source = Column(String, nullable=False)  # stripe | promo | manual
    # Unique so a replayed webhook cannot grant twice
    stripe_checkout_session_id = Column(String, unique=True, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

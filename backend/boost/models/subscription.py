from sqlalchemy import Column, String, Integer, Boolean, JSON, Enum, DateTime, ForeignKey, Uuid
import uuid
import enum
from ..core.db import Base, utcnow


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    PAUSED = "paused"
    TRIALING = "trialing"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), index=True, nullable=False)
    business_id = Column(Uuid, ForeignKey("businesses.id"), nullable=True)
    stripe_subscription_id = Column(String, unique=True, nullable=False)
    stripe_customer_id = Column(String, nullable=False)
    status = Column(
        Enum(
            SubscriptionStatus,
            name="subscription_status",
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
        ),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    current_week = Column(Integer, nullable=False, default=1)  # 1..4
    original_run_id = Column(Uuid, ForeignKey("runs.id"), nullable=True)
    strategy_context = Column(JSON, nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

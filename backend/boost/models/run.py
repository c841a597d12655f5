from sqlalchemy import (
    Column,
    String,
    Text,
    JSON,
    Enum,
    Date,
    DateTime,
    Integer,
    ForeignKey,
    Uuid,
)
import uuid
import enum
from ..core.db import Base, utcnow


class RunStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class RunSource(str, enum.Enum):
    STRIPE = "stripe"
    CREDITS = "credits"
    PROMO = "promo"
    REFINEMENT = "refinement"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Run(Base):
    __tablename__ = "runs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), index=True, nullable=True)
    business_id = Column(Uuid, ForeignKey("businesses.id"), index=True, nullable=True)

    input = Column(JSON, nullable=False)  # RunInput form payload
    output = Column(Text, nullable=True)  # strategy markdown
    structured_output = Column(JSON, nullable=True)
    research_data = Column(JSON, nullable=True)

    status = Column(
        Enum(RunStatus, name="run_status", values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=RunStatus.PENDING,
    )
    stage = Column(String, nullable=True)  # progress label shown while polling
    source = Column(
        Enum(RunSource, name="run_source", values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=RunSource.STRIPE,
    )
    error_message = Column(String, nullable=True)

    # Refinements always point at the root run of the chain
    parent_run_id = Column(Uuid, ForeignKey("runs.id"), index=True, nullable=True)
    additional_context = Column(Text, nullable=True)
    refinements_used = Column(Integer, nullable=False, default=0)

    share_slug = Column(String, unique=True, index=True, nullable=True)
    stripe_session_id = Column(String, index=True, nullable=True)
    plan_start_date = Column(Date, nullable=True)
    feedback_email_sent = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

from sqlalchemy import Column, String, JSON, DateTime, UniqueConstraint, Uuid
import uuid
from ..core.db import Base, utcnow


class FreeToolResult(Base):
    __tablename__ = "free_tool_results"
    __table_args__ = (
        # One result per normalized email per tool
        UniqueConstraint("email", "tool_type", name="uq_free_tool_results_email_tool"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    slug = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, nullable=False)
    tool_type = Column(String, index=True, nullable=False)
    input = Column(JSON, nullable=False)
    output = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

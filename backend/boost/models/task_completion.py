from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid
import uuid
from ..core.db import Base, utcnow


class TaskCompletion(Base):
    __tablename__ = "task_completions"
    __table_args__ = (
        UniqueConstraint("run_id", "task_index", name="uq_task_completions_run_task"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    run_id = Column(Uuid, ForeignKey("runs.id"), index=True, nullable=False)
    task_index = Column(Integer, nullable=False)
    track = Column(String, nullable=True)  # sprint | build
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    note = Column(Text, nullable=True)
    outcome = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

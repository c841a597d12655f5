from sqlalchemy import Column, String, DateTime, Uuid
import uuid
from ..core.db import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)  # lowercased
    created_at = Column(DateTime, default=utcnow, nullable=False)

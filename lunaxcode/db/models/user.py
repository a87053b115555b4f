import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from lunaxcode.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(String, nullable=False, default="client")  # admin | client
    created_at = Column(DateTime(timezone=True), server_default=func.now())

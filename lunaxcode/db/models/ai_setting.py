from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from lunaxcode.db.base import Base


class AISetting(Base):
    """
    Administrator-configured credential for one AI provider.

    At most one row is active at a time; the active row is the provider used
    for generation and carries the per-user generation ceiling.
    """
    __tablename__ = "ai_settings"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String, unique=True, nullable=False, index=True)  # "google", "openai", "anthropic", ...
    api_key = Column(String, nullable=False)
    model = Column(String, nullable=False)
    max_generations_per_user = Column(Integer, nullable=True, default=3)  # NULL falls back to 3
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

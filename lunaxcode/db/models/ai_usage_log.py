from sqlalchemy import Column, Integer, String, DateTime, Text, Index
from sqlalchemy.sql import func
from lunaxcode.db.base import Base


class AIUsageLog(Base):
    """
    Append-only record of one AI generation attempt.

    Rows are never updated or deleted; counting `success` rows per user is
    the only input to quota enforcement.
    """
    __tablename__ = "ai_usage_log"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)  # user id, or email when the user row is missing
    project_id = Column(Integer, nullable=True)
    generation_type = Column(String, nullable=False, index=True)  # prd | tasks | description_suggestion | description_enhance
    provider = Column(String, nullable=False)
    model = Column(String, nullable=False)
    prompt_tokens = Column(Integer, nullable=True)
    completion_tokens = Column(Integer, nullable=True)
    total_tokens = Column(Integer, nullable=True)
    status = Column(String, nullable=False, index=True)  # success | error | rate_limited
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index('idx_ai_usage_user_status', 'user_id', 'status'),
    )

"""
Request-scoped dependencies shared by the route modules.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from lunaxcode.core.rate_limit import SlidingWindowRateLimiter
from lunaxcode.db.session import get_db
from lunaxcode.llm.callers import DirectCaller
from lunaxcode.llm.router import ProviderRouter
from lunaxcode.services.storage import SqlAlchemyStorage, Storage


def get_storage(request: Request, db: Session = Depends(get_db)) -> Storage:
    """In-memory storage when the app was started with one, else the database."""
    storage = getattr(request.app.state, "storage", None)
    if storage is not None:
        return storage
    return SqlAlchemyStorage(db)


def get_provider_router(request: Request) -> ProviderRouter:
    return request.app.state.provider_router


def get_direct_caller(request: Request) -> DirectCaller:
    return request.app.state.direct_caller


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.rate_limiter

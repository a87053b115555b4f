"""
Storage for AI settings, users and the usage log.

Two backends implement the same interface: SqlAlchemyStorage (default) and
InMemoryStorage (development). The in-memory backend owns its state per
instance; the app creates one at startup and keeps it on app.state.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from lunaxcode.db.models import AISetting, AIUsageLog, User

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================
# Records
# ============================================

@dataclass
class SettingRecord:
    provider: str
    api_key: str
    model: str
    max_generations_per_user: Optional[int] = 3
    is_active: bool = True
    created_by: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class UserRecord:
    id: str
    email: str
    name: str = ""
    role: str = "client"


@dataclass
class UsageRecord:
    user_id: str
    generation_type: str
    provider: str
    model: str
    status: str
    project_id: Optional[int] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    error_message: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = field(default=None)


def _setting_record(row: AISetting) -> SettingRecord:
    return SettingRecord(
        id=row.id,
        provider=row.provider,
        api_key=row.api_key,
        model=row.model,
        max_generations_per_user=row.max_generations_per_user,
        is_active=bool(row.is_active),
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _usage_record(row: AIUsageLog) -> UsageRecord:
    return UsageRecord(
        id=row.id,
        user_id=row.user_id,
        project_id=row.project_id,
        generation_type=row.generation_type,
        provider=row.provider,
        model=row.model,
        prompt_tokens=row.prompt_tokens,
        completion_tokens=row.completion_tokens,
        total_tokens=row.total_tokens,
        status=row.status,
        error_message=row.error_message,
        created_at=row.created_at,
    )


def _user_record(row: User) -> UserRecord:
    return UserRecord(id=row.id, email=row.email, name=row.name, role=row.role)


# ============================================
# Interface
# ============================================

class Storage(ABC):
    """Persistence used by the usage gate and the admin endpoints."""

    # Settings

    @abstractmethod
    def get_active_setting(self) -> Optional[SettingRecord]:
        pass

    @abstractmethod
    def list_settings(self) -> List[SettingRecord]:
        pass

    @abstractmethod
    def get_setting(self, provider: str) -> Optional[SettingRecord]:
        pass

    @abstractmethod
    def save_setting(self, setting: SettingRecord) -> SettingRecord:
        """Insert or replace the row for setting.provider. An active row deactivates all others."""
        pass

    @abstractmethod
    def update_setting(
        self,
        provider: str,
        is_active: Optional[bool] = None,
        max_generations_per_user: Optional[int] = None,
    ) -> Optional[SettingRecord]:
        """Patch one row; returns None when the provider has no row."""
        pass

    @abstractmethod
    def delete_setting(self, provider: str) -> bool:
        pass

    # Users

    @abstractmethod
    def get_user_role(self, user_id: str) -> Optional[str]:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        pass

    # Usage log

    @abstractmethod
    def append_usage(self, entry: UsageRecord) -> UsageRecord:
        pass

    @abstractmethod
    def count_usage(self, user_id: Optional[str] = None, status: Optional[str] = None) -> int:
        pass

    @abstractmethod
    def list_usage(self, user_id: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[UsageRecord]:
        """Newest first."""
        pass

    @abstractmethod
    def count_usage_by_type(self, status: str = "success") -> Dict[str, int]:
        pass

    @abstractmethod
    def count_success_by_user(self) -> Dict[str, int]:
        pass

    @abstractmethod
    def count_distinct_users(self) -> int:
        pass


# ============================================
# SQLAlchemy backend
# ============================================

class SqlAlchemyStorage(Storage):
    """Storage backed by a request-scoped SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def get_active_setting(self) -> Optional[SettingRecord]:
        row = self.db.query(AISetting).filter(AISetting.is_active.is_(True)).order_by(AISetting.id).first()
        return _setting_record(row) if row else None

    def list_settings(self) -> List[SettingRecord]:
        return [_setting_record(r) for r in self.db.query(AISetting).order_by(AISetting.id).all()]

    def get_setting(self, provider: str) -> Optional[SettingRecord]:
        row = self.db.query(AISetting).filter(AISetting.provider == provider).first()
        return _setting_record(row) if row else None

    def _deactivate_others(self, provider: str) -> None:
        self.db.query(AISetting).filter(AISetting.provider != provider).update(
            {AISetting.is_active: False}, synchronize_session=False
        )

    def save_setting(self, setting: SettingRecord) -> SettingRecord:
        try:
            if setting.is_active:
                self._deactivate_others(setting.provider)

            row = self.db.query(AISetting).filter(AISetting.provider == setting.provider).first()
            if row is None:
                row = AISetting(provider=setting.provider, created_by=setting.created_by)
                self.db.add(row)
            row.api_key = setting.api_key
            row.model = setting.model
            row.max_generations_per_user = setting.max_generations_per_user
            row.is_active = setting.is_active

            self.db.commit()
            self.db.refresh(row)
            return _setting_record(row)
        except Exception:
            self.db.rollback()
            raise

    def update_setting(self, provider, is_active=None, max_generations_per_user=None):
        row = self.db.query(AISetting).filter(AISetting.provider == provider).first()
        if row is None:
            return None
        try:
            if is_active:
                self._deactivate_others(provider)
            if is_active is not None:
                row.is_active = is_active
            if max_generations_per_user is not None:
                row.max_generations_per_user = max_generations_per_user
            self.db.commit()
            self.db.refresh(row)
            return _setting_record(row)
        except Exception:
            self.db.rollback()
            raise

    def delete_setting(self, provider: str) -> bool:
        deleted = self.db.query(AISetting).filter(AISetting.provider == provider).delete(synchronize_session=False)
        self.db.commit()
        return deleted > 0

    def get_user_role(self, user_id: str) -> Optional[str]:
        row = self.db.query(User.role).filter(User.id == user_id).first()
        return row[0] if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        row = self.db.query(User).filter(User.email == email).first()
        return _user_record(row) if row else None

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        ids = list(user_ids)
        if not ids:
            return {}
        return {u.id: _user_record(u) for u in self.db.query(User).filter(User.id.in_(ids)).all()}

    def append_usage(self, entry: UsageRecord) -> UsageRecord:
        row = AIUsageLog(
            user_id=entry.user_id,
            project_id=entry.project_id,
            generation_type=entry.generation_type,
            provider=entry.provider,
            model=entry.model,
            prompt_tokens=entry.prompt_tokens,
            completion_tokens=entry.completion_tokens,
            total_tokens=entry.total_tokens,
            status=entry.status,
            error_message=entry.error_message,
        )
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except Exception:
            self.db.rollback()
            raise
        return _usage_record(row)

    def count_usage(self, user_id: Optional[str] = None, status: Optional[str] = None) -> int:
        query = self.db.query(func.count(AIUsageLog.id))
        if user_id is not None:
            query = query.filter(AIUsageLog.user_id == user_id)
        if status is not None:
            query = query.filter(AIUsageLog.status == status)
        return query.scalar() or 0

    def list_usage(self, user_id: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[UsageRecord]:
        query = self.db.query(AIUsageLog)
        if user_id is not None:
            query = query.filter(AIUsageLog.user_id == user_id)
        rows = query.order_by(AIUsageLog.created_at.desc(), AIUsageLog.id.desc()).offset(offset).limit(limit).all()
        return [_usage_record(r) for r in rows]

    def count_usage_by_type(self, status: str = "success") -> Dict[str, int]:
        rows = (
            self.db.query(AIUsageLog.generation_type, func.count(AIUsageLog.id))
            .filter(AIUsageLog.status == status)
            .group_by(AIUsageLog.generation_type)
            .all()
        )
        return {generation_type: int(total) for generation_type, total in rows}

    def count_success_by_user(self) -> Dict[str, int]:
        rows = (
            self.db.query(AIUsageLog.user_id, func.count(AIUsageLog.id))
            .filter(AIUsageLog.status == "success")
            .group_by(AIUsageLog.user_id)
            .all()
        )
        return {user_id: int(total) for user_id, total in rows}

    def count_distinct_users(self) -> int:
        return self.db.query(func.count(func.distinct(AIUsageLog.user_id))).scalar() or 0


# ============================================
# In-memory backend
# ============================================

class InMemoryStorage(Storage):
    """Process-local storage for development. Contents are lost on restart."""

    def __init__(self):
        self._lock = threading.Lock()
        self._settings: Dict[str, SettingRecord] = {}
        self._users: Dict[str, UserRecord] = {}
        self._usage: List[UsageRecord] = []
        self._next_setting_id = 1

    def add_user(self, user: UserRecord) -> UserRecord:
        with self._lock:
            self._users[user.id] = user
        return user

    def get_active_setting(self) -> Optional[SettingRecord]:
        with self._lock:
            active = [s for s in self._settings.values() if s.is_active]
        return replace(min(active, key=lambda s: s.id)) if active else None

    def list_settings(self) -> List[SettingRecord]:
        with self._lock:
            return [replace(s) for s in sorted(self._settings.values(), key=lambda s: s.id)]

    def get_setting(self, provider: str) -> Optional[SettingRecord]:
        with self._lock:
            setting = self._settings.get(provider)
        return replace(setting) if setting else None

    def _deactivate_others(self, provider: str) -> None:
        for other in self._settings.values():
            if other.provider != provider:
                other.is_active = False

    def save_setting(self, setting: SettingRecord) -> SettingRecord:
        now = _utcnow()
        with self._lock:
            if setting.is_active:
                self._deactivate_others(setting.provider)
            existing = self._settings.get(setting.provider)
            if existing is None:
                stored = replace(setting, id=self._next_setting_id, created_at=now, updated_at=now)
                self._next_setting_id += 1
            else:
                stored = replace(
                    setting,
                    id=existing.id,
                    created_by=existing.created_by,
                    created_at=existing.created_at,
                    updated_at=now,
                )
            self._settings[setting.provider] = stored
            return replace(stored)

    def update_setting(self, provider, is_active=None, max_generations_per_user=None):
        with self._lock:
            setting = self._settings.get(provider)
            if setting is None:
                return None
            if is_active:
                self._deactivate_others(provider)
            if is_active is not None:
                setting.is_active = is_active
            if max_generations_per_user is not None:
                setting.max_generations_per_user = max_generations_per_user
            setting.updated_at = _utcnow()
            return replace(setting)

    def delete_setting(self, provider: str) -> bool:
        with self._lock:
            return self._settings.pop(provider, None) is not None

    def get_user_role(self, user_id: str) -> Optional[str]:
        user = self._users.get(user_id)
        return user.role if user else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        return next((u for u in self._users.values() if u.email == email), None)

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        return {uid: self._users[uid] for uid in user_ids if uid in self._users}

    def append_usage(self, entry: UsageRecord) -> UsageRecord:
        with self._lock:
            stored = replace(entry, id=len(self._usage) + 1, created_at=entry.created_at or _utcnow())
            self._usage.append(stored)
            return replace(stored)

    def _select(self, user_id: Optional[str] = None, status: Optional[str] = None) -> List[UsageRecord]:
        with self._lock:
            entries = list(self._usage)
        return [
            e for e in entries
            if (user_id is None or e.user_id == user_id) and (status is None or e.status == status)
        ]

    def count_usage(self, user_id: Optional[str] = None, status: Optional[str] = None) -> int:
        return len(self._select(user_id, status))

    def list_usage(self, user_id: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[UsageRecord]:
        newest_first = sorted(self._select(user_id), key=lambda e: e.id, reverse=True)
        return [replace(e) for e in newest_first[offset:offset + limit]]

    def count_usage_by_type(self, status: str = "success") -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for entry in self._select(status=status):
            counts[entry.generation_type] = counts.get(entry.generation_type, 0) + 1
        return counts

    def count_success_by_user(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for entry in self._select(status="success"):
            counts[entry.user_id] = counts.get(entry.user_id, 0) + 1
        return counts

    def count_distinct_users(self) -> int:
        return len({e.user_id for e in self._select()})

# backend/app/repositories/user_repository.py
"""
User Repository for the trainer booking platform.

Read-side lookups for users: by id, by role, and the trainer search used
by slot discovery.
"""

import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..core.enums import RoleName
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for User data access."""

    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.find_one_by(email=email.strip().lower())

    def get_active_with_role(self, user_id: Optional[str], role: RoleName) -> Optional[User]:
        """Return the user only when it exists, is active and carries ``role``."""
        if not user_id:
            return None
        query = self._build_query().filter(
            User.id == user_id,
            User.role == role.value,
            User.is_active.is_(True),
        )
        return self._first(query)

    def search_trainers(self, query: Optional[str] = None, limit: int = 50) -> List[User]:
        """Active trainers, optionally filtered by a case-insensitive name/email fragment."""
        q = self._build_query().filter(
            User.role == RoleName.TRAINER.value,
            User.is_active.is_(True),
        )
        if query:
            pattern = f"%{query.strip()}%"
            q = q.filter(or_(User.full_name.ilike(pattern), User.email.ilike(pattern)))
        return self._execute_query(q.order_by(User.full_name.asc(), User.id.asc()).limit(limit))

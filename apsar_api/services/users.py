"""User provisioning and credential checks."""

import logging
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import hash_password, password_needs_rehash, verify_password
from ..models import AuditAction, User, UserRole, has_role, utcnow
from .audit import AuditService
from .errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)

    async def _get_user_or_raise(self, user_id: UUID) -> User:
        user = await self._session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def authenticate(self, email_or_phone: str, password: str) -> User:
        """Return the active user matching the credentials or raise Unauthorized."""
        identifier = email_or_phone.strip()
        result = await self._session.execute(
            select(User).where(or_(User.email == identifier.lower(), User.phone == identifier))
        )
        user = result.scalar_one_or_none()

        if user is None or not user.password_hash or not verify_password(password, user.password_hash):
            logger.info("Failed login attempt")
            raise UnauthorizedError("Invalid credentials")
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated")
        if password_needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)

        user.last_login_at = utcnow()
        await self._session.flush()
        return user

    async def get_active_user(self, user_id: UUID) -> User:
        user = await self._session.get(User, user_id)
        if user is None or not user.is_active:
            raise UnauthorizedError("User not found or inactive")
        return user

    async def register_push_token(self, user: User, push_token: str | None) -> User:
        user.push_token = push_token
        await self._session.flush()
        return user

    async def list_users(
        self,
        role: UserRole | None = None,
        unit: str | None = None,
        include_inactive: bool = False,
    ) -> Sequence[User]:
        query = select(User)
        if role is not None:
            query = query.where(User.role == role)
        if unit:
            query = query.where(User.unit == unit)
        if not include_inactive:
            query = query.where(User.is_active.is_(True))
        result = await self._session.execute(query.order_by(User.name.asc()))
        return result.scalars().all()

    async def create_user(
        self,
        actor: User,
        name: str,
        password: str,
        role: UserRole = UserRole.MEMBER,
        email: str | None = None,
        phone: str | None = None,
        unit: str | None = None,
        badge_number: str | None = None,
    ) -> User:
        if not has_role(actor.role, UserRole.ADMIN):
            raise ForbiddenError("Only admins can provision users")

        email = email.lower() if email else None
        clauses = []
        if email:
            clauses.append(User.email == email)
        if phone:
            clauses.append(User.phone == phone)
        if clauses:
            existing = await self._session.execute(select(User.id).where(or_(*clauses)))
            if existing.first() is not None:
                raise ConflictError("A user with that email or phone already exists")

        user = User(
            id=uuid4(),
            name=name,
            email=email,
            phone=phone,
            role=role,
            unit=unit,
            badge_number=badge_number,
            is_active=True,
            password_hash=hash_password(password),
        )
        self._session.add(user)
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.CREATE, "user", user.id,
            entity_name=user.name, changes={"role": role.value},
        )
        logger.info(f"User {user.id} provisioned with role {role.value} by {actor.id}")
        return user

    async def change_role(self, user_id: UUID, role: UserRole, actor: User) -> User:
        if not has_role(actor.role, UserRole.ADMIN):
            raise ForbiddenError("Only admins can change roles")
        user = await self._get_user_or_raise(user_id)
        old_role = UserRole(user.role)
        if old_role == role:
            return user

        user.role = role
        await self._session.flush()
        self._audit.log_event(
            actor, AuditAction.UPDATE, "user", user.id,
            entity_name=user.name, changes={"role": {"old": old_role.value, "new": role.value}},
        )
        logger.info(f"User {user.id} role {old_role.value} -> {role.value} by {actor.id}")
        return user

    async def deactivate(self, user_id: UUID, actor: User) -> User:
        """Users are never deleted, only deactivated."""
        if not has_role(actor.role, UserRole.ADMIN):
            raise ForbiddenError("Only admins can deactivate users")
        user = await self._get_user_or_raise(user_id)
        if user.id == actor.id:
            raise ForbiddenError("Admins cannot deactivate themselves")
        if not user.is_active:
            return user

        user.is_active = False
        user.push_token = None
        await self._session.flush()
        self._audit.log_event(actor, AuditAction.UPDATE, "user", user.id, changes={"isActive": False})
        return user

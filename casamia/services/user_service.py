import logging
from typing import Optional, List, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.database.core import utcnow
from casamia.database.models import User, Role
from casamia.errors import NotFoundError, ConflictError, PermissionDeniedError, ServiceError
from casamia.services.auth_service import hash_password

USER_FIELDS = ("name", "email", "phone", "worker_info")


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def ensure_email_available(session: AsyncSession, email: str, exclude_user_id: Optional[int] = None):
    stmt = select(User.id).where(func.lower(User.email) == normalize_email(email))
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    result = await session.execute(stmt)
    if result.first():
        raise ConflictError(f"User with email {email} already exists")


async def get_user(session: AsyncSession, user_id: int, include_deleted: bool = False) -> User:
    user = await session.get(User, user_id)
    if not user or (user.is_deleted and not include_deleted):
        raise NotFoundError(f"User ID {user_id} not found")
    return user


async def list_users(
    session: AsyncSession,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    include_deleted: bool = False,
    limit: int = 50,
    offset: int = 0
) -> Tuple[List[User], int]:
    """Users matching the filters plus the total count for pagination."""
    conditions = []
    if role:
        conditions.append(User.role == role)
    if is_active is not None:
        conditions.append(User.is_active == is_active)
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(func.lower(User.name).like(pattern) | func.lower(User.email).like(pattern))
    if not include_deleted:
        conditions.append(User.is_deleted == False)

    total = (await session.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
    stmt = select(User).where(*conditions).order_by(User.created_at.desc(), User.id.desc()).limit(limit).offset(offset)
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


async def create_user(
    session: AsyncSession,
    name: str,
    email: str,
    password: str,
    role: str,
    phone: Optional[str] = None,
    worker_info: Optional[dict] = None
) -> User:
    """Create an admin or worker account. Tenants are created through tenant_service."""
    if role == Role.tenant.value:
        raise ServiceError("Tenants must be created with tenant details")

    await ensure_email_available(session, email)
    user = User(
        name=name,
        email=normalize_email(email),
        password_hash=hash_password(password),
        role=role,
        phone=phone,
        worker_info=worker_info if role == Role.worker.value else None,
    )
    session.add(user)
    await session.commit()
    logging.info(f"User {user.id} created with role {role}")
    return user


async def update_user(session: AsyncSession, user_id: int, changes: dict) -> User:
    user = await get_user(session, user_id)
    if "email" in changes and changes["email"]:
        await ensure_email_available(session, changes["email"], exclude_user_id=user_id)
        changes["email"] = normalize_email(changes["email"])

    for field in USER_FIELDS:
        if field in changes:
            setattr(user, field, changes[field])
    await session.commit()
    return user


def _guard_self(user: User, acting_user_id: Optional[int], action: str):
    if acting_user_id is not None and user.id == acting_user_id:
        raise PermissionDeniedError(f"You cannot {action} your own account")


async def toggle_user_status(session: AsyncSession, user_id: int, acting_user_id: Optional[int] = None) -> User:
    """Flip is_active for an admin or worker account."""
    user = await get_user(session, user_id)
    _guard_self(user, acting_user_id, "deactivate")
    user.is_active = not user.is_active
    await session.commit()
    logging.info(f"User {user_id} {'activated' if user.is_active else 'deactivated'} by {acting_user_id}")
    return user


async def delete_user(session: AsyncSession, user_id: int, acting_user_id: Optional[int] = None) -> User:
    """Soft delete an admin or worker account."""
    user = await get_user(session, user_id)
    _guard_self(user, acting_user_id, "delete")
    user.is_active = False
    user.is_deleted = True
    user.deleted_at = utcnow()
    user.deleted_by = acting_user_id
    user.is_historical_record = True
    await session.commit()
    logging.info(f"User {user_id} soft-deleted by {acting_user_id}")
    return user

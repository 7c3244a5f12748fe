from datetime import date
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from sqlalchemy import func
from sqlalchemy import or_
from sqlalchemy.orm import Session

from smarttask.models.enums import TaskPriority
from smarttask.models.enums import TaskStatus
from smarttask.models.enums import UserRole
from smarttask.models.models import RefreshToken
from smarttask.models.models import Task
from smarttask.models.models import User

# ------------------------------------------------------------
# Users
# ------------------------------------------------------------


def get_user(db: Session, user_id: int, *, active_only: bool = False) -> Optional[User]:
    """Return user by primary key."""
    query = db.query(User).filter(User.id == user_id)
    if active_only:
        query = query.filter(User.is_active.is_(True))
    return query.first()


def get_user_by_email(db: Session, email: str, *, active_only: bool = False) -> Optional[User]:
    """Return user by e-mail address (case-insensitive)."""
    query = db.query(User).filter(func.lower(User.email) == email.lower())
    if active_only:
        query = query.filter(User.is_active.is_(True))
    return query.first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    """Return user by username (case-insensitive)."""
    return db.query(User).filter(func.lower(User.username) == username.lower()).first()


def get_user_by_email_or_username(db: Session, email: str, username: str) -> Optional[User]:
    return (
        db.query(User)
        .filter(or_(func.lower(User.email) == email.lower(), func.lower(User.username) == username.lower()))
        .first()
    )


def get_users(db: Session, skip: int = 0, limit: int = 100) -> List[User]:
    return db.query(User).order_by(User.id).offset(skip).limit(limit).all()


def create_user(
    db: Session,
    *,
    username: str,
    email: str,
    password_hash: str,
    full_name: Optional[str] = None,
    phone_number: Optional[str] = None,
    role: str = UserRole.USER.value,
) -> User:
    """Insert new user row.

    Caller is expected to ensure uniqueness beforehand; we do not upsert here.
    """
    new_user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        full_name=full_name,
        phone_number=phone_number,
        role=role,
        is_active=True,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    return new_user


def update_user(db: Session, user_id: int, **fields: Any) -> Optional[User]:
    """Partial update for the *User* table.

    Only the provided fields are modified – `None` leaves the column unchanged.
    Returns the updated user row or ``None`` if the record was not found.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return None

    for key, value in fields.items():
        if value is not None:
            setattr(user, key, value)

    db.commit()
    db.refresh(user)
    return user


def update_user_password(db: Session, user_id: int, password_hash: str) -> bool:
    updated = db.query(User).filter(User.id == user_id).update({User.password_hash: password_hash})
    db.commit()
    return updated > 0


# ------------------------------------------------------------
# Refresh tokens
# ------------------------------------------------------------


def save_refresh_token(
    db: Session,
    *,
    token: str,
    user_id: int,
    expires_at: datetime,
    created_by_ip: Optional[str],
) -> RefreshToken:
    row = RefreshToken(
        token=token,
        user_id=user_id,
        expires_at=expires_at,
        created_by_ip=created_by_ip,
        is_revoked=False,
    )
    db.add(row)
    db.commit()
    return row


def get_active_refresh_token(db: Session, token: str) -> Optional[RefreshToken]:
    """Return the non-revoked token row (expiry is checked by the caller)."""
    return db.query(RefreshToken).filter(RefreshToken.token == token, RefreshToken.is_revoked.is_(False)).first()


def revoke_refresh_token(db: Session, token: str, *, revoked_at: datetime, revoked_by: Optional[str]) -> int:
    updated = (
        db.query(RefreshToken)
        .filter(RefreshToken.token == token)
        .update(
            {
                RefreshToken.is_revoked: True,
                RefreshToken.revoked_at: revoked_at,
                RefreshToken.revoked_by: revoked_by,
            }
        )
    )
    db.commit()
    return updated


# ------------------------------------------------------------
# Tasks
# ------------------------------------------------------------


def create_task(
    db: Session,
    *,
    owner_id: int,
    title: str,
    description: Optional[str] = None,
    priority: str = TaskPriority.MEDIUM.value,
    due_date: Optional[date] = None,
) -> Task:
    task = Task(
        owner_id=owner_id,
        title=title,
        description=description,
        status=TaskStatus.TODO.value,
        priority=priority,
        due_date=due_date,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def get_task(db: Session, task_id: int) -> Optional[Task]:
    return db.query(Task).filter(Task.id == task_id).first()


def get_tasks(db: Session, *, owner_id: int, status: Optional[str] = None) -> List[Task]:
    query = db.query(Task).filter(Task.owner_id == owner_id)
    if status is not None:
        query = query.filter(Task.status == status)
    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


def update_task(db: Session, task_id: int, fields: Dict[str, Any]) -> Optional[Task]:
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None:
        return None

    for key, value in fields.items():
        setattr(task, key, value)

    db.commit()
    db.refresh(task)
    return task


def delete_task(db: Session, task_id: int) -> bool:
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None:
        return False
    db.delete(task)
    db.commit()
    return True

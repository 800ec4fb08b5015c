"""User record lookups and writes."""

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.models.user import User


def get_by_id(db: Session, user_id: str) -> User | None:
    return db.get(User, user_id)


def get_by_username(db: Session, username: str) -> User | None:
    return db.execute(select(User).where(User.username == username)).scalars().first()


def get_by_email(db: Session, email: str) -> User | None:
    normalized = email.strip().lower()
    return db.execute(select(User).where(User.email == normalized)).scalars().first()


def get_by_username_or_email(db: Session, identifier: str) -> User | None:
    """Resolve a login identifier; usernames match exactly, emails case-insensitively."""
    stmt = select(User).where(
        or_(User.username == identifier, User.email == identifier.strip().lower())
    )
    return db.execute(stmt).scalars().first()


def exists_by_username(db: Session, username: str) -> bool:
    stmt = select(func.count()).select_from(User).where(User.username == username)
    return db.execute(stmt).scalar_one() > 0


def exists_by_email(db: Session, email: str) -> bool:
    stmt = (
        select(func.count())
        .select_from(User)
        .where(User.email == email.strip().lower())
    )
    return db.execute(stmt).scalar_one() > 0


def list_users(db: Session, offset: int = 0, limit: int = 50) -> tuple[list[User], int]:
    """Return one page of users ordered by creation time, plus the total count."""
    total = db.execute(select(func.count()).select_from(User)).scalar_one()
    users = (
        db.execute(
            select(User).order_by(User.created_at, User.username).offset(offset).limit(limit)
        )
        .scalars()
        .all()
    )
    return list(users), total


def create(db: Session, user: User) -> User:
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update(db: Session, user: User) -> User:
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def delete(db: Session, user: User) -> None:
    db.delete(user)
    db.commit()

"""ORM model for user accounts, including the status/role lifecycle rules."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, Column, Enum, String

from app.core.errors import DuplicateRole, InvalidStateTransition, RoleNotFound
from app.models.base import Base, UTCDateTime

DEFAULT_ROLE = "user"
ADMIN_ROLE = "admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    User account for authentication and role-based access control.

    Instances are loaded per request and mutated only through the transition
    and role methods below, each of which re-stamps updated_at. The id is
    assigned when the row is first flushed.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(String(255), nullable=False, unique=True, index=True)
    # Stored trimmed and lowercased, so uniqueness is case-insensitive.
    email = Column(String(254), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, nullable=False, default=lambda: [DEFAULT_ROLE])
    status = Column(
        Enum(UserStatus, name="user_status", native_enum=False, length=16),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    created_at = Column(UTCDateTime(), nullable=False)
    updated_at = Column(UTCDateTime(), nullable=False)

    @classmethod
    def create(
        cls,
        username: str,
        email: str,
        password_hash: str,
        roles: list[str] | None = None,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> "User":
        """Build a new, not yet persisted user with creation timestamps."""
        now = datetime.now(UTC)
        return cls(
            username=username,
            email=email,
            password_hash=password_hash,
            roles=list(roles) if roles else [DEFAULT_ROLE],
            status=status,
            created_at=now,
            updated_at=now,
        )

    def _touch(self) -> None:
        now = datetime.now(UTC)
        if self.updated_at is None or now > self.updated_at:
            self.updated_at = now

    # Status queries

    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def is_inactive(self) -> bool:
        return self.status == UserStatus.INACTIVE

    def is_suspended(self) -> bool:
        return self.status == UserStatus.SUSPENDED

    def can_login(self) -> bool:
        return self.is_active()

    # Status transitions; moving into the current state is an error, not a no-op

    def _transition(self, target: UserStatus, label: str) -> None:
        if self.status == target:
            raise InvalidStateTransition(f"User is already {label}")
        self.status = target
        self._touch()

    def activate(self) -> "User":
        self._transition(UserStatus.ACTIVE, "active")
        return self

    def suspend(self) -> "User":
        self._transition(UserStatus.SUSPENDED, "suspended")
        return self

    def deactivate(self) -> "User":
        self._transition(UserStatus.INACTIVE, "inactive")
        return self

    def change_status(self, target: UserStatus) -> "User":
        """Dispatch to the transition method for target."""
        transitions = {
            UserStatus.ACTIVE: self.activate,
            UserStatus.SUSPENDED: self.suspend,
            UserStatus.INACTIVE: self.deactivate,
        }
        return transitions[UserStatus(target)]()

    # Roles

    def has_role(self, role: str) -> bool:
        return role in (self.roles or [])

    def has_any_role(self, roles: list[str]) -> bool:
        return any(self.has_role(role) for role in roles)

    def add_role(self, role: str) -> "User":
        if self.has_role(role):
            raise DuplicateRole(f"User already has role: {role}")
        # Reassign so the JSON column is flagged dirty.
        self.roles = [*self.roles, role]
        self._touch()
        return self

    def remove_role(self, role: str) -> "User":
        if not self.has_role(role):
            raise RoleNotFound(f"User does not have role: {role}")
        remaining = [r for r in self.roles if r != role]
        if not remaining:
            raise InvalidStateTransition("A user must keep at least one role")
        self.roles = remaining
        self._touch()
        return self

    def set_roles(self, roles: list[str]) -> "User":
        """Replace the role set; duplicates collapse, order is kept."""
        cleaned = list(dict.fromkeys(r.strip() for r in roles if r and r.strip()))
        if not cleaned:
            raise InvalidStateTransition("A user must keep at least one role")
        self.roles = cleaned
        self._touch()
        return self

    # Identity fields; uniqueness is checked by the caller against the store

    def rename(self, username: str) -> "User":
        self.username = username
        self._touch()
        return self

    def change_email(self, email: str) -> "User":
        """email must already be normalized."""
        self.email = email
        self._touch()
        return self

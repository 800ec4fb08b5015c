"""Unit tests for the User status state machine and role management."""

import unittest
from datetime import UTC, datetime, timedelta

from app.core.errors import DuplicateRole, InvalidStateTransition, RoleNotFound
from app.models.user import User, UserStatus


def _user(status: UserStatus = UserStatus.ACTIVE, roles: list[str] | None = None) -> User:
    """Build an unsaved user for tests."""
    user = User.create(
        username="alice",
        email="alice@example.com",
        password_hash="$2b$10$hash",
        roles=roles,
        status=status,
    )
    # Push timestamps into the past so re-stamping is observable.
    earlier = datetime.now(UTC) - timedelta(minutes=5)
    user.created_at = earlier
    user.updated_at = earlier
    return user


class TestUserCreate(unittest.TestCase):
    def test_defaults(self) -> None:
        user = User.create(username="bob", email="bob@x.com", password_hash="h")
        self.assertIsNone(user.id)
        self.assertEqual(user.roles, ["user"])
        self.assertEqual(user.status, UserStatus.ACTIVE)
        self.assertEqual(user.created_at, user.updated_at)
        self.assertIsNotNone(user.created_at.tzinfo)


class TestStatusTransitions(unittest.TestCase):
    def test_can_login_only_when_active(self) -> None:
        self.assertTrue(_user(UserStatus.ACTIVE).can_login())
        self.assertFalse(_user(UserStatus.INACTIVE).can_login())
        self.assertFalse(_user(UserStatus.SUSPENDED).can_login())

    def test_suspend_then_activate(self) -> None:
        user = _user()
        before = user.updated_at
        user.suspend()
        self.assertTrue(user.is_suspended())
        self.assertGreater(user.updated_at, before)
        user.activate()
        self.assertTrue(user.is_active())

    def test_deactivate(self) -> None:
        user = _user()
        user.deactivate()
        self.assertTrue(user.is_inactive())
        self.assertFalse(user.can_login())

    def test_transition_into_current_state_fails(self) -> None:
        with self.assertRaises(InvalidStateTransition):
            _user(UserStatus.ACTIVE).activate()
        with self.assertRaises(InvalidStateTransition):
            _user(UserStatus.SUSPENDED).suspend()
        with self.assertRaises(InvalidStateTransition):
            _user(UserStatus.INACTIVE).deactivate()

    def test_failed_transition_does_not_touch_updated_at(self) -> None:
        user = _user()
        before = user.updated_at
        with self.assertRaises(InvalidStateTransition):
            user.activate()
        self.assertEqual(user.updated_at, before)

    def test_change_status_dispatch(self) -> None:
        user = _user()
        user.change_status(UserStatus.SUSPENDED)
        self.assertEqual(user.status, UserStatus.SUSPENDED)
        user.change_status(UserStatus.INACTIVE)
        self.assertEqual(user.status, UserStatus.INACTIVE)


class TestRoles(unittest.TestCase):
    def test_has_role_queries(self) -> None:
        user = _user(roles=["user", "editor"])
        self.assertTrue(user.has_role("editor"))
        self.assertFalse(user.has_role("admin"))
        self.assertTrue(user.has_any_role(["admin", "editor"]))
        self.assertFalse(user.has_any_role(["admin"]))
        self.assertFalse(user.has_any_role([]))

    def test_add_role(self) -> None:
        user = _user()
        before = user.updated_at
        user.add_role("admin")
        self.assertEqual(user.roles, ["user", "admin"])
        self.assertGreater(user.updated_at, before)

    def test_add_duplicate_role_fails(self) -> None:
        with self.assertRaises(DuplicateRole):
            _user().add_role("user")

    def test_remove_role(self) -> None:
        user = _user(roles=["user", "admin"])
        user.remove_role("admin")
        self.assertEqual(user.roles, ["user"])

    def test_remove_missing_role_fails(self) -> None:
        with self.assertRaises(RoleNotFound):
            _user().remove_role("admin")

    def test_last_role_cannot_be_removed(self) -> None:
        user = _user()
        with self.assertRaises(InvalidStateTransition):
            user.remove_role("user")
        self.assertEqual(user.roles, ["user"])

    def test_set_roles_replaces_and_dedupes(self) -> None:
        user = _user()
        before = user.updated_at
        user.set_roles([" admin ", "user", "admin"])
        self.assertEqual(user.roles, ["admin", "user"])
        self.assertGreater(user.updated_at, before)

    def test_set_roles_rejects_empty(self) -> None:
        user = _user()
        with self.assertRaises(InvalidStateTransition):
            user.set_roles(["  "])
        self.assertEqual(user.roles, ["user"])


class TestIdentityFields(unittest.TestCase):
    def test_rename_and_change_email_restamp(self) -> None:
        user = _user()
        before = user.updated_at
        user.rename("alicia").change_email("alicia@example.com")
        self.assertEqual((user.username, user.email), ("alicia", "alicia@example.com"))
        self.assertGreater(user.updated_at, before)


if __name__ == "__main__":
    unittest.main()

"""Unit tests for app.services.tokens: access tokens, refresh persistence, rotation, reuse detection."""

import unittest
from datetime import UTC, datetime, timedelta

import jwt
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.core.errors import (
    AccountNotActive,
    InvalidRefreshToken,
    InvalidToken,
    RefreshTokenExpired,
    RefreshTokenReuseDetected,
)
from app.core.security import hash_token
from app.models import Base, RefreshToken, User
from app.schemas.auth import TokenPayload
from app.services.tokens import TokenService

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "DATABASE_URL": "sqlite://",
        "JWT_ACCESS_SECRET": ACCESS_SECRET,
        "JWT_REFRESH_SECRET": REFRESH_SECRET,
        "BCRYPT_ROUNDS": 10,
    }
    values.update(overrides)
    return Settings(**values)


def _session() -> Session:
    """Fresh in-memory SQLite session with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False)()


def _add_user(db: Session, username: str = "alice") -> User:
    user = User.create(username=username, email=f"{username}@example.com", password_hash="x")
    db.add(user)
    db.commit()
    return user


def _payload(user: User) -> TokenPayload:
    return TokenPayload(subject_id=user.id, username=user.username, roles=list(user.roles))


class TestAccessTokens(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _session()
        self.service = TokenService(self.db, _settings())

    def tearDown(self) -> None:
        self.db.close()

    def test_round_trip(self) -> None:
        payload = TokenPayload(subject_id="u-1", username="alice", roles=["user", "admin"])
        token = self.service.generate_access_token(payload)
        self.assertEqual(self.service.verify_access_token(token), payload)

    def test_expiry_is_short(self) -> None:
        token = self.service.generate_access_token(
            TokenPayload(subject_id="u-1", username="alice", roles=["user"])
        )
        claims = jwt.decode(token, ACCESS_SECRET, algorithms=["HS256"])
        self.assertEqual(claims["exp"] - claims["iat"], 15 * 60)

    def test_expired_token_is_invalid(self) -> None:
        past = datetime.now(UTC) - timedelta(hours=1)
        minted_earlier = TokenService(self.db, _settings(), clock=lambda: past)
        token = minted_earlier.generate_access_token(
            TokenPayload(subject_id="u-1", username="alice", roles=["user"])
        )
        with self.assertRaises(InvalidToken):
            self.service.verify_access_token(token)

    def test_wrong_secret_is_invalid(self) -> None:
        token = jwt.encode(
            {"sub": "u-1", "username": "a", "roles": [], "type": "access",
             "exp": datetime.now(UTC) + timedelta(minutes=5)},
            "some-other-secret-that-is-32-bytes-long",
            algorithm="HS256",
        )
        with self.assertRaises(InvalidToken):
            self.service.verify_access_token(token)

    def test_refresh_token_is_not_an_access_token(self) -> None:
        refresh = self.service.generate_refresh_token("u-1")
        with self.assertRaises(InvalidToken):
            self.service.verify_access_token(refresh)

    def test_garbage_is_invalid(self) -> None:
        for garbage in ("", "not.a.jwt", "abc"):
            with self.assertRaises(InvalidToken):
                self.service.verify_access_token(garbage)


class TestRefreshTokenStorage(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _session()
        self.service = TokenService(self.db, _settings())
        self.user = _add_user(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def test_save_stores_hash_not_token(self) -> None:
        token = self.service.generate_refresh_token(self.user.id)
        expires_at = self.service.refresh_expiry()
        self.service.save_refresh_token(self.user.id, token, expires_at, ip_address="1.2.3.4")
        record = self.service.find_refresh_token(token)
        self.assertIsNotNone(record)
        self.assertEqual(record.token_hash, hash_token(token))
        self.assertNotEqual(record.token_hash, token)
        self.assertFalse(record.revoked)
        self.assertEqual(record.user_id, self.user.id)
        self.assertEqual(record.ip_address, "1.2.3.4")

    def test_refresh_tokens_are_unique(self) -> None:
        first = self.service.generate_refresh_token(self.user.id)
        second = self.service.generate_refresh_token(self.user.id)
        self.assertNotEqual(first, second)

    def test_refresh_expiry_is_seven_days(self) -> None:
        token = self.service.generate_refresh_token(self.user.id)
        claims = jwt.decode(token, REFRESH_SECRET, algorithms=["HS256"])
        self.assertEqual(claims["exp"] - claims["iat"], 7 * 24 * 60 * 60)

    def test_unknown_token_counts_as_revoked(self) -> None:
        self.assertTrue(self.service.is_token_revoked("never-issued"))
        self.assertIsNone(self.service.find_refresh_token("never-issued"))

    def test_revoke_is_idempotent(self) -> None:
        token = self.service.generate_refresh_token(self.user.id)
        self.service.save_refresh_token(self.user.id, token, self.service.refresh_expiry())
        self.assertFalse(self.service.is_token_revoked(token))
        self.service.revoke_refresh_token(token)
        self.assertTrue(self.service.is_token_revoked(token))
        self.service.revoke_refresh_token(token)
        self.service.revoke_refresh_token("never-issued")
        self.assertTrue(self.service.is_token_revoked(token))

    def test_revoke_all_user_tokens(self) -> None:
        other = _add_user(self.db, "bob")
        mine = [self.service.issue_token_pair(_payload(self.user)).refresh_token for _ in range(3)]
        theirs = self.service.issue_token_pair(_payload(other)).refresh_token
        self.assertEqual(self.service.revoke_all_user_refresh_tokens(self.user.id), 3)
        for token in mine:
            self.assertTrue(self.service.is_token_revoked(token))
        self.assertFalse(self.service.is_token_revoked(theirs))


class TestRotation(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _session()
        self.service = TokenService(self.db, _settings())
        self.user = _add_user(self.db)
        self.load_subject = lambda user_id: _payload(self.db.get(User, user_id))

    def tearDown(self) -> None:
        self.db.close()

    def test_rotate_issues_new_pair_and_consumes_old(self) -> None:
        old = self.service.issue_token_pair(_payload(self.user), user_agent="ua-1")
        new = self.service.rotate(old.refresh_token, self.load_subject)
        self.assertNotEqual(new.refresh_token, old.refresh_token)
        self.assertTrue(self.service.is_token_revoked(old.refresh_token))
        self.assertFalse(self.service.is_token_revoked(new.refresh_token))
        self.assertEqual(self.service.verify_access_token(new.access_token).subject_id, self.user.id)
        # Client metadata carries forward to the replacement.
        self.assertEqual(self.service.find_refresh_token(new.refresh_token).user_agent, "ua-1")

    def test_second_rotation_is_reuse_and_revokes_everything(self) -> None:
        old = self.service.issue_token_pair(_payload(self.user))
        other_session = self.service.issue_token_pair(_payload(self.user))
        new = self.service.rotate(old.refresh_token, self.load_subject)

        with self.assertLogs("app.services.tokens", level="WARNING"):
            with self.assertRaises(RefreshTokenReuseDetected):
                self.service.rotate(old.refresh_token, self.load_subject)

        self.assertTrue(self.service.is_token_revoked(new.refresh_token))
        self.assertTrue(self.service.is_token_revoked(other_session.refresh_token))

    def test_validly_signed_but_unknown_token_is_reuse(self) -> None:
        live = self.service.issue_token_pair(_payload(self.user))
        unknown = self.service.generate_refresh_token(self.user.id)
        with self.assertRaises(RefreshTokenReuseDetected):
            self.service.rotate(unknown, self.load_subject)
        self.assertTrue(self.service.is_token_revoked(live.refresh_token))

    def test_bad_signature_is_invalid(self) -> None:
        forged = jwt.encode(
            {"sub": self.user.id, "type": "refresh", "jti": "x",
             "exp": datetime.now(UTC) + timedelta(days=1)},
            "forged-secret-forged-secret-forged-secret",
            algorithm="HS256",
        )
        live = self.service.issue_token_pair(_payload(self.user))
        with self.assertRaises(InvalidRefreshToken):
            self.service.rotate(forged, self.load_subject)
        with self.assertRaises(InvalidRefreshToken):
            self.service.rotate("garbage", self.load_subject)
        # No mass revocation for tokens that fail signature checks.
        self.assertFalse(self.service.is_token_revoked(live.refresh_token))

    def test_access_token_cannot_be_rotated(self) -> None:
        pair = self.service.issue_token_pair(_payload(self.user))
        with self.assertRaises(InvalidRefreshToken):
            self.service.rotate(pair.access_token, self.load_subject)

    def test_expired_token_is_revoked_without_new_pair(self) -> None:
        past = datetime.now(UTC) - timedelta(days=8)
        minted_earlier = TokenService(self.db, _settings(), clock=lambda: past)
        old = minted_earlier.issue_token_pair(_payload(self.user))

        with self.assertRaises(RefreshTokenExpired):
            self.service.rotate(old.refresh_token, self.load_subject)

        self.assertTrue(self.service.is_token_revoked(old.refresh_token))
        count = self.db.execute(select(RefreshToken)).scalars().all()
        self.assertEqual(len(count), 1)

    def test_purged_expired_token_is_reuse(self) -> None:
        old = self.service.issue_token_pair(_payload(self.user))
        live = self.service.issue_token_pair(_payload(self.user))
        self.db.delete(self.service.find_refresh_token(old.refresh_token))
        self.db.commit()

        later = datetime.now(UTC) + timedelta(days=8)
        service = TokenService(self.db, _settings(), clock=lambda: later)
        with self.assertRaises(RefreshTokenReuseDetected):
            service.rotate(old.refresh_token, self.load_subject)
        self.assertTrue(self.service.is_token_revoked(live.refresh_token))

    def test_subject_rejection_keeps_old_token_revoked(self) -> None:
        old = self.service.issue_token_pair(_payload(self.user))

        def reject(user_id: str) -> TokenPayload:
            raise AccountNotActive()

        with self.assertRaises(AccountNotActive):
            self.service.rotate(old.refresh_token, reject)
        self.assertTrue(self.service.is_token_revoked(old.refresh_token))
        self.assertEqual(len(self.db.execute(select(RefreshToken)).scalars().all()), 1)


if __name__ == "__main__":
    unittest.main()

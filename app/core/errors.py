"""Typed failures raised by the auth core; the API layer maps them to HTTP responses."""


class AuthServiceError(Exception):
    """Base for every expected failure of a use case. Carries a stable machine code."""

    status_code = 400
    code = "error"
    default_message = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# Validation: malformed client input at registration.


class InputValidationError(AuthServiceError):
    status_code = 422
    code = "validation_error"


class InvalidEmail(InputValidationError):
    code = "invalid_email"
    default_message = "Invalid email format"


class WeakPassword(InputValidationError):
    code = "weak_password"
    default_message = "Password does not meet requirements"


# Authentication: every cause surfaces as 401; the code is for logs and UI guidance.


class AuthenticationError(AuthServiceError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"


class TooManyAttempts(AuthenticationError):
    code = "too_many_attempts"

    def __init__(self, lockout_minutes: int = 15) -> None:
        self.lockout_minutes = lockout_minutes
        super().__init__(
            f"Too many failed login attempts. Please try again in {lockout_minutes} minutes."
        )


class InvalidCredentials(AuthenticationError):
    code = "invalid_credentials"
    default_message = "Invalid credentials"


class AccountSuspended(AuthenticationError):
    code = "account_suspended"
    default_message = "Your account has been suspended. Please contact support."


class AccountInactive(AuthenticationError):
    code = "account_inactive"
    default_message = "Your account is inactive. Please contact an administrator."


class AccountNotActive(AuthenticationError):
    code = "account_not_active"
    default_message = "User account is not active"


class InvalidToken(AuthenticationError):
    code = "invalid_token"
    default_message = "Invalid or expired token"


class InvalidRefreshToken(AuthenticationError):
    code = "invalid_refresh_token"
    default_message = "Invalid refresh token"


class RefreshTokenExpired(AuthenticationError):
    code = "refresh_token_expired"
    default_message = "Refresh token has expired"


class RefreshTokenReuseDetected(AuthenticationError):
    code = "refresh_token_reuse_detected"
    default_message = "Refresh token has already been used"


class PermissionDenied(AuthServiceError):
    status_code = 403
    code = "permission_denied"
    default_message = "Admin access required"


# Conflict: uniqueness and state-machine violations.


class ConflictError(AuthServiceError):
    status_code = 409
    code = "conflict"


class UsernameTaken(ConflictError):
    code = "username_taken"
    default_message = "Username already exists"


class EmailTaken(ConflictError):
    code = "email_taken"
    default_message = "Email already exists"


class InvalidStateTransition(ConflictError):
    code = "invalid_state_transition"
    default_message = "Invalid status transition"


class DuplicateRole(ConflictError):
    code = "duplicate_role"
    default_message = "User already has this role"


# Not found: administrative operations on missing records.


class NotFoundError(AuthServiceError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class UserNotFound(NotFoundError):
    code = "user_not_found"
    default_message = "User not found"


class RoleNotFound(NotFoundError):
    code = "role_not_found"
    default_message = "User does not have this role"

"""Typed failures surfaced by the authentication core.

WHY CUSTOM ERROR CLASSES:
- Every expected outcome has a stable machine-readable code
- Callers (an HTTP layer, a CLI) map codes to their own transport
- Messages are always safe to show; internal detail stays in the logs
"""


class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing or unsafe."""


class AuthError(Exception):
    """Base class for authentication errors.

    Attributes:
        code: Machine-readable error code (e.g., "TOKEN_INVALID").
        message: Human-readable message, safe to return to a caller.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        """Return the safe error envelope for this failure."""
        body: dict = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AuthError):
    """Input failed a format or strength rule."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            details=details,
        )


class DuplicateEmailError(AuthError):
    """An account with this email already exists."""

    def __init__(self, message: str = "Email already registered") -> None:
        super().__init__(code="DUPLICATE_EMAIL", message=message)


class InvalidCredentialsError(AuthError):
    """Bad login or wrong current password.

    WHY ONE ERROR FOR BOTH CASES:
    - "No such account" vs "wrong password" would confirm which emails exist
    """

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(code="INVALID_CREDENTIALS", message=message)


class EmailNotVerifiedError(AuthError):
    """Credentials are correct but the email address is not verified yet."""

    def __init__(
        self,
        message: str = "Please verify your email before signing in.",
    ) -> None:
        super().__init__(code="EMAIL_NOT_VERIFIED", message=message)


class CodeInvalidOrExpiredError(AuthError):
    """Verification code is wrong, expired, already used, or for another purpose.

    The four cases are intentionally indistinguishable to the caller.
    """

    def __init__(
        self,
        message: str = "Invalid or expired verification code",
    ) -> None:
        super().__init__(code="CODE_INVALID_OR_EXPIRED", message=message)


class TokenExpiredError(AuthError):
    """Token signature is valid but its lifetime has elapsed."""

    def __init__(self, message: str = "Token has expired") -> None:
        super().__init__(code="TOKEN_EXPIRED", message=message)


class TokenInvalidError(AuthError):
    """Bad signature, wrong secret, malformed token, or replay detected."""

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(code="TOKEN_INVALID", message=message)


class InsufficientPermissionsError(AuthError):
    """Caller is authenticated but lacks the required role or permission."""

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(code="INSUFFICIENT_PERMISSIONS", message=message)


class RateLimitExceededError(AuthError):
    """Too many attempts from one caller for one route class.

    Attributes:
        retry_after: Seconds until another attempt will be admitted.
    """

    def __init__(
        self,
        retry_after: int,
        message: str = "Too many requests. Please try again later.",
    ) -> None:
        self.retry_after = retry_after
        super().__init__(
            code="RATE_LIMIT_EXCEEDED",
            message=message,
            details=[{"retry_after": retry_after}],
        )


class NotFoundError(AuthError):
    """Resource absent.

    Raised by the session ledger when a rotation finds no row to replace.
    """

    def __init__(self, resource: str) -> None:
        super().__init__(code="NOT_FOUND", message=f"{resource} not found")


class DeliveryError(AuthError):
    """Email could not be handed to the delivery provider.

    Never fails the primary operation; logged by the dispatcher.
    """

    def __init__(self, message: str = "Email delivery failed") -> None:
        super().__init__(code="DELIVERY_ERROR", message=message)


class InternalError(AuthError):
    """Unexpected store or infrastructure fault.

    The message is deliberately generic; the cause is logged, not returned.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(code="INTERNAL_ERROR", message=message)

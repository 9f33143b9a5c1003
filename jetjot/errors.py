"""
Error taxonomy shared by the stores, the auth gate and the HTTP layer.
"""

from __future__ import annotations


class JetJotError(Exception):
    """Base class for errors surfaced to the user as inline messages."""

    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    default_message = "Something went wrong."

    @property
    def message(self) -> str:
        return str(self)


class RateLimited(JetJotError):
    status_code = 429

    def __init__(self, minutes: int):
        self.minutes = minutes
        suffix = "" if minutes == 1 else "s"
        super().__init__(
            f"Too many attempts. Please wait {minutes} minute{suffix} "
            "before trying again."
        )


class AccountDisabled(JetJotError):
    status_code = 403
    default_message = (
        "Your account has been disabled. Please contact the administrator."
    )


class InvalidCredentials(JetJotError):
    status_code = 401
    default_message = (
        "This username is already taken and the password is incorrect. "
        "If this is your account, check your password and try again."
    )


class BackendUnavailable(JetJotError):
    status_code = 503
    default_message = (
        "Cannot reach the database. Check the DATABASE_URL setting and "
        "that the database is running."
    )


class ValidationFailed(JetJotError):
    status_code = 422
    default_message = "Invalid input."


class SprintNotFound(JetJotError):
    status_code = 404
    default_message = "Sprint not found."


class CredentialNotFound(JetJotError):
    status_code = 404
    default_message = "User not found."

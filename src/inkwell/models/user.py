"""Signed-in user session and profile rules."""

from typing import Optional

from pydantic import BaseModel, Field


USERNAME_MIN_LENGTH = 3


def validate_username(username: str) -> str:
    """Return the username unchanged, or raise if it is too short."""
    if len((username or "").strip()) < USERNAME_MIN_LENGTH:
        raise ValueError(f"Username must be at least {USERNAME_MIN_LENGTH} characters long")
    return username


class AuthSession(BaseModel):
    """Result of signing in or signing up against the store's auth service.

    A sign-up that still awaits email confirmation has a user id but no
    access token.
    """

    user_id: str = Field(..., description="Auth user id (owner id on project rows)")

    email: Optional[str] = Field(default=None)

    access_token: Optional[str] = Field(default=None, description="JWT sent as the Bearer token")

    refresh_token: Optional[str] = Field(default=None)

    @property
    def is_active(self) -> bool:
        return bool(self.access_token)

    model_config = {"frozen": True}

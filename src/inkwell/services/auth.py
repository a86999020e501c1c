"""Client for the hosted store's auth service.

Accounts live in the same backend-as-a-service as the project table. Its
auth API (``<store url>/auth/v1``) issues the JWT that the REST interface
expects as the Bearer token; the user id in that token is the ``user_id``
on project rows.
"""

from typing import Any, Optional

import httpx

from inkwell.models.config import StoreConfig
from inkwell.models.user import AuthSession
from inkwell.services.exceptions import AuthError
from inkwell.utils.logging import get_logger


logger = get_logger(__name__)


def _auth_error_message(response: httpx.Response) -> str:
    """Pick the human-readable message out of an auth error body."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"Auth service returned HTTP {response.status_code}"


def _session_from_body(body: dict) -> AuthSession:
    """Build a session from a token or sign-up reply.

    Token replies nest the user under ``user``; a sign-up awaiting
    confirmation returns the bare user object.
    """
    user = body.get("user") if isinstance(body.get("user"), dict) else body
    if not user.get("id"):
        raise AuthError("Auth service reply did not include a user")
    return AuthSession(
        user_id=str(user["id"]),
        email=user.get("email"),
        access_token=body.get("access_token"),
        refresh_token=body.get("refresh_token"),
    )


class StoreAuthClient:
    """Password sign-in, sign-up and account updates."""

    def __init__(
        self,
        config: StoreConfig,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 30.0
    ):
        """
        Args:
            config: Store URL and public API key
            transport: Optional httpx transport (used in tests)
            timeout: Request timeout in seconds

        Raises:
            ValueError: If the store URL or API key is missing
        """
        if not config.is_configured:
            raise ValueError(
                "Project store is not configured. Set store.url and store.api_key "
                "in config.yaml or INKWELL_STORE_URL / INKWELL_STORE_API_KEY."
            )
        self.client = httpx.Client(
            base_url=str(config.url).rstrip("/") + "/auth/v1",
            headers={"apikey": config.api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "StoreAuthClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("auth_request_failed", path=path, error=str(e))
            raise AuthError(f"Auth service unreachable: {e}") from e

        if response.is_error:
            message = _auth_error_message(response)
            logger.warning("auth_request_rejected", path=path, status_code=response.status_code)
            raise AuthError(message, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise AuthError(f"Malformed reply from auth service: {e}") from e

    def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Exchange email and password for an access token.

        Raises:
            AuthError: On wrong credentials or an unreachable service
        """
        body = self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = _session_from_body(body)
        if not session.is_active:
            raise AuthError("Auth service did not return an access token")
        logger.info("auth_signed_in", user_id=session.user_id)
        return session

    def sign_up(self, email: str, password: str) -> AuthSession:
        """
        Create an account.

        Returns:
            The new user's session; ``is_active`` is False while the
            address still needs confirming.
        """
        session = _session_from_body(self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password},
        ))
        logger.info("auth_signed_up", user_id=session.user_id, confirmed=session.is_active)
        return session

    def get_user(self, access_token: str) -> dict:
        """The user behind an access token (raises AuthError once it has expired)."""
        return self._request("GET", "/user", headers={"Authorization": f"Bearer {access_token}"})

    def update_password(self, access_token: str, password: str) -> None:
        self._request(
            "PUT",
            "/user",
            json={"password": password},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        logger.info("auth_password_updated")

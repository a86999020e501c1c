"""Custom exceptions for Inkwell services."""

from typing import Optional


class InkwellError(Exception):
    """Base exception for Inkwell errors."""

    pass


class LLMError(InkwellError):
    """Upstream language-model failure.

    Covers network errors, authentication failures, quota and rate-limit
    replies, and malformed responses. The proxy turns these into HTTP 500.
    """

    pass


class LLMAPIError(LLMError):
    """Transport or API-level error (network, authentication, quota, etc.)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LLMResponseError(LLMError):
    """Reply from the LLM did not have the expected shape."""

    pass


class ProxyError(InkwellError):
    """The assistant proxy could not be reached or answered with an error.

    Attributes:
        status_code: HTTP status from the proxy, if a reply was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StoreError(InkwellError):
    """A project store request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(InkwellError):
    """Sign-in, sign-up or account update was refused by the store's auth service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

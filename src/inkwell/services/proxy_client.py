"""Client-side transport to the assistant proxy (``POST /api/ai``)."""

import httpx
from typing import Any, Dict, List, Optional

from inkwell.services.exceptions import ProxyError
from inkwell.utils.logging import get_logger


logger = get_logger(__name__)

DEFAULT_ERROR_MESSAGE = "Error reaching AI backend"


class AssistantProxyClient:
    """Posts message lists to the assistant proxy and returns its reply message."""

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None
    ):
        """
        Args:
            base_url: Proxy base URL (e.g. http://127.0.0.1:3001)
            transport: Optional httpx transport (ASGI app or mock in tests)
            timeout: Optional request timeout; None leaves it to the proxy and provider
        """
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = httpx.Timeout(timeout)

    async def send(
        self,
        messages: List[Dict[str, Any]],
        section_content: Optional[str] = None,
        expect_structured_edit: Optional[bool] = None
    ) -> Dict[str, Any]:
        """
        Send one request to the proxy.

        Args:
            messages: Outbound messages (role/content dicts)
            section_content: Optional grounding text for the model
            expect_structured_edit: Explicit structured-reply flag; omitted when None

        Returns:
            The ``response`` message object from the proxy

        Raises:
            ProxyError: On network failure or any non-2xx reply
        """
        body: Dict[str, Any] = {"messages": messages}
        if section_content is not None:
            body["sectionContent"] = section_content
        if expect_structured_edit is not None:
            body["expectStructuredEdit"] = expect_structured_edit

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                transport=self._transport,
                timeout=self._timeout,
            ) as client:
                response = await client.post("/api/ai", json=body)
        except httpx.HTTPError as e:
            logger.error("proxy_unreachable", url=self.base_url, error=str(e))
            raise ProxyError(str(e) or DEFAULT_ERROR_MESSAGE) from e

        if response.is_error:
            try:
                message = response.json().get("error") or DEFAULT_ERROR_MESSAGE
            except (ValueError, AttributeError):
                message = DEFAULT_ERROR_MESSAGE
            raise ProxyError(str(message), status_code=response.status_code)

        try:
            reply = response.json()["response"]
        except (ValueError, KeyError, TypeError) as e:
            raise ProxyError(f"Malformed reply from AI backend: {e}") from e

        if not isinstance(reply, dict):
            raise ProxyError("Malformed reply from AI backend: response is not an object")
        return reply

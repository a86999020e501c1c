"""Upstream chat-completion client for the assistant proxy."""

import httpx
from typing import Any, Dict, List, Optional

from inkwell.models.config import LLMConfig
from inkwell.services.exceptions import LLMAPIError, LLMResponseError
from inkwell.utils.logging import get_logger


logger = get_logger(__name__)


def _provider_error_message(response: httpx.Response) -> str:
    """
    Extract the provider's error message from a failed response.

    OpenAI-compatible APIs reply with:
    {
        "error": {"message": "...", "type": "...", "code": "..."}
    }

    Falls back to the HTTP status line when the body has no message.
    """
    try:
        data = response.json()
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    except (ValueError, AttributeError):
        pass
    return f"LLM API returned HTTP {response.status_code}"


class ChatCompletionClient:
    """
    HTTP client for an OpenAI-compatible chat-completion API.

    One request per call: no streaming, no retries. Temperature and output
    token limit come from the configuration.
    """

    def __init__(
        self,
        config: LLMConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize chat-completion client.

        Args:
            config: LLM configuration (endpoint, API key, model, sampling)
            transport: Optional httpx transport (used to route requests in tests)
        """
        self.config = config
        self.timeout = httpx.Timeout(config.timeout, connect=10.0)
        self._transport = transport

    @property
    def url(self) -> str:
        endpoint = str(self.config.endpoint).rstrip("/")
        if not endpoint.endswith("/chat/completions"):
            endpoint = f"{endpoint}/chat/completions"
        return endpoint

    async def complete(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Send a message list and return the model's reply message.

        Args:
            messages: Chat messages in wire format (role/content dicts)

        Returns:
            The ``choices[0].message`` object from the reply

        Raises:
            LLMAPIError: On network errors or non-2xx replies
            LLMResponseError: If the reply has no message
        """
        payload = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

        logger.info(
            "llm_request_started",
            model=self.config.model,
            endpoint=str(self.config.endpoint),
            message_count=len(messages),
        )
        logger.debug("llm_request_payload", payload=payload)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.config.api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            logger.error("llm_request_failed", error=str(e), error_type=type(e).__name__)
            raise LLMAPIError(str(e) or type(e).__name__) from e

        if response.is_error:
            message = _provider_error_message(response)
            logger.error(
                "llm_http_error",
                status_code=response.status_code,
                error=message,
            )
            raise LLMAPIError(message, status_code=response.status_code)

        try:
            data = response.json()
            message = data["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("llm_malformed_response", error=str(e))
            raise LLMResponseError(f"Malformed response from LLM API: {e}") from e

        if not isinstance(message, dict):
            raise LLMResponseError("Malformed response from LLM API: message is not an object")

        logger.info(
            "llm_request_completed",
            finish_reason=data["choices"][0].get("finish_reason"),
            content_length=len(message.get("content") or ""),
        )
        logger.debug("llm_response_message", message=message)
        return message

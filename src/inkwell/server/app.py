"""Assistant proxy endpoint.

``POST /api/ai`` accepts ``{"messages": [...], "sectionContent"?: str,
"expectStructuredEdit"?: bool}``, forwards the messages to the chat-completion
API and replies ``{"response": {"role": "assistant", "content": ...}}``.

The endpoint is stateless. It performs no authentication, rate limiting or
request size limiting; deploy it behind something that does.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from inkwell import __version__
from inkwell.assistant.prompts import has_edit_intent, with_context, wrap_structured_reply
from inkwell.models.config import LLMConfig
from inkwell.services.exceptions import LLMError
from inkwell.services.llm_client import ChatCompletionClient
from inkwell.utils.logging import get_logger


logger = get_logger(__name__)

INVALID_MESSAGES_ERROR = "Missing or invalid messages array."


def wants_structured_reply(messages: list, flag: Any) -> bool:
    """Explicit ``expectStructuredEdit`` wins; otherwise sniff the last user turn."""
    if isinstance(flag, bool):
        return flag
    return has_edit_intent(messages)


def create_app(
    llm_config: Optional[LLMConfig] = None,
    llm_client: Optional[ChatCompletionClient] = None
) -> FastAPI:
    """
    Build the proxy application.

    Args:
        llm_config: Upstream API settings (used when no client is given)
        llm_client: Pre-built upstream client

    Returns:
        FastAPI application

    Raises:
        ValueError: If neither a config nor a client is given
    """
    if llm_client is None:
        if llm_config is None:
            raise ValueError("create_app needs an LLMConfig or a ChatCompletionClient")
        llm_client = ChatCompletionClient(llm_config)

    app = FastAPI(title="Inkwell Assistant Proxy", version=__version__)
    app.state.llm_client = llm_client

    @app.post("/api/ai")
    async def ask_ai(request: Request):
        try:
            body = await request.json()
        except ValueError:
            body = None

        messages = body.get("messages") if isinstance(body, dict) else None
        if not isinstance(messages, list):
            logger.warning("proxy_request_rejected", reason="invalid_messages")
            return JSONResponse(status_code=400, content={"error": INVALID_MESSAGES_ERROR})

        section_content = body.get("sectionContent")
        if not isinstance(section_content, str):
            section_content = None

        logger.info(
            "proxy_request_received",
            message_count=len(messages),
            has_section_content=bool(section_content),
        )

        try:
            reply = await request.app.state.llm_client.complete(
                with_context(messages, section_content)
            )
        except LLMError as e:
            logger.error("proxy_upstream_failed", error=str(e), error_type=type(e).__name__)
            return JSONResponse(status_code=500, content={"error": str(e) or "LLM API error"})

        if wants_structured_reply(messages, body.get("expectStructuredEdit")):
            reply = {
                "role": reply.get("role", "assistant"),
                "content": wrap_structured_reply(reply.get("content") or ""),
            }
            logger.info("proxy_reply_structured")

        return {"response": reply}

    @app.api_route(
        "/api/ai",
        methods=["GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS"],
        include_in_schema=False,
    )
    async def ask_ai_wrong_method():
        return JSONResponse(status_code=405, content={"error": "Method not allowed"})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app

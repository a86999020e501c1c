"""Client-side conversation state for the writing assistant.

One ConversationManager backs one UI surface (a section editor or the
project assistant). It keeps a short rolling history, remembers the last
prompt for regeneration, and never raises: failures come back as a
warning-prefixed reply and are also recorded in ``error``.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Optional, Union

from inkwell.assistant.prompts import DEFAULT_MODE, compose_prompt
from inkwell.models.message import Message, StructuredReply
from inkwell.services.proxy_client import DEFAULT_ERROR_MESSAGE, AssistantProxyClient
from inkwell.utils.logging import get_logger


logger = get_logger(__name__)

MAX_HISTORY = 6
WARNING_PREFIX = "⚠️ "

Reply = Union[str, StructuredReply]


@dataclass(frozen=True)
class _PromptRecord:
    """What is needed to re-issue the last prompt."""

    text: str
    mode: str
    section_content: Optional[str]
    expect_structured_edit: Optional[bool]


def parse_reply_content(content: object) -> Reply:
    """
    Interpret the content of a proxy reply.

    Content that is a JSON object with a non-empty ``newContent`` becomes a
    StructuredReply; anything else is returned as plain text.
    """
    if not isinstance(content, str):
        return "" if content is None else str(content)
    try:
        parsed = json.loads(content)
    except ValueError:
        return content
    if isinstance(parsed, dict) and isinstance(parsed.get("newContent"), str) and parsed["newContent"]:
        return StructuredReply(new_content=parsed["newContent"])
    return content


class ConversationManager:
    """
    Bounded conversation history plus ask/regenerate/clear operations.

    State fields (read them after a call returns):
        history: Stored turns, oldest first, at most ``max_history`` long
        loading: True while a request is in flight
        error: Message of the last failure, or None
        response: Last reply (text, StructuredReply, or warning string)
        last_prompt: Raw text of the last non-regenerate ask, or None

    Calls on one manager are serialized; a call made while another is in
    flight waits for it and then sees the updated history.

    Example:
        >>> manager = ConversationManager(AssistantProxyClient("http://127.0.0.1:3001"))
        >>> reply = await manager.ask("It were a dark night", mode="fix")
    """

    def __init__(self, client: AssistantProxyClient, max_history: int = MAX_HISTORY):
        """
        Args:
            client: Transport to the assistant proxy
            max_history: Number of turns to keep (oldest evicted first)
        """
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.client = client
        self.max_history = max_history
        self.history: list[Message] = []
        self.loading = False
        self.error: Optional[str] = None
        self.response: Optional[Reply] = None
        self._last_request: Optional[_PromptRecord] = None
        self._lock = asyncio.Lock()

    @property
    def last_prompt(self) -> Optional[str]:
        return self._last_request.text if self._last_request else None

    def _append(self, message: Message) -> None:
        self.history = [*self.history, message][-self.max_history:]

    async def ask(
        self,
        text: str,
        *,
        regenerate: bool = False,
        display_message: Optional[str] = None,
        mode: Optional[str] = None,
        section_content: Optional[str] = None,
        expect_structured_edit: Optional[bool] = None
    ) -> Reply:
        """
        Send a prompt to the assistant and record the exchange.

        Args:
            text: Text to send (wrapped with the mode's instruction)
            regenerate: Re-issue instead of adding a new user turn
            display_message: What to store as the visible user turn
            mode: Prompt template (brainstorm, outline, rewrite, summarize, fix)
            section_content: Grounding text passed to the proxy, never stored
            expect_structured_edit: Explicit structured-reply flag for the proxy

        Returns:
            Reply text, a StructuredReply, or ``"⚠️ <message>"`` on failure
        """
        async with self._lock:
            return await self._ask_locked(
                text,
                regenerate=regenerate,
                display_message=display_message,
                mode=mode or DEFAULT_MODE,
                section_content=section_content,
                expect_structured_edit=expect_structured_edit,
            )

    async def _ask_locked(
        self,
        text: str,
        *,
        regenerate: bool,
        display_message: Optional[str],
        mode: str,
        section_content: Optional[str],
        expect_structured_edit: Optional[bool]
    ) -> Reply:
        self.loading = True
        self.error = None
        self.response = None

        try:
            # Snapshot before any mutation; the outbound list is built from it
            snapshot = list(self.history)
            prompt = compose_prompt(text, mode)

            if regenerate:
                prior = snapshot[:-1]
            else:
                self._last_request = _PromptRecord(
                    text=text,
                    mode=mode,
                    section_content=section_content,
                    expect_structured_edit=expect_structured_edit,
                )
                self._append(Message(
                    role="user",
                    content=display_message or prompt,
                    original_prompt=text if display_message else None,
                ))
                prior = snapshot

            outbound = [m.to_payload() for m in prior]
            outbound.append({"role": "user", "content": prompt})

            logger.info(
                "assistant_ask_started",
                mode=mode,
                regenerate=regenerate,
                outbound_count=len(outbound),
                has_section_content=bool(section_content),
            )
            logger.debug("assistant_outbound_messages", messages=outbound)

            reply_message = await self.client.send(
                outbound,
                section_content=section_content,
                expect_structured_edit=expect_structured_edit,
            )
            reply = parse_reply_content(reply_message.get("content"))

            if regenerate and self.history and self.history[-1].role == "assistant":
                # Regeneration replaces the previous reply
                self.history = self.history[:-1]

            stored = reply.new_content if isinstance(reply, StructuredReply) else reply
            self._append(Message(role="assistant", content=stored))
            self.response = reply

            logger.info(
                "assistant_ask_completed",
                structured=isinstance(reply, StructuredReply),
                history_length=len(self.history),
            )
            return reply

        except Exception as e:
            message = str(e) or DEFAULT_ERROR_MESSAGE
            logger.error(
                "assistant_ask_failed",
                error=message,
                error_type=type(e).__name__,
            )
            self.error = message
            self.response = f"{WARNING_PREFIX}{message}"
            return self.response

        finally:
            self.loading = False

    async def regenerate(self) -> Optional[Reply]:
        """Re-issue the last prompt; returns None when nothing was asked yet."""
        record = self._last_request
        if record is None or not record.text:
            return None
        return await self.ask(
            record.text,
            regenerate=True,
            mode=record.mode,
            section_content=record.section_content,
            expect_structured_edit=record.expect_structured_edit,
        )

    def clear_history(self) -> None:
        """Forget all turns, the last prompt, and any error or response."""
        self.history = []
        self._last_request = None
        self.error = None
        self.response = None
        logger.info("assistant_history_cleared")

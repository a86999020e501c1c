"""Chat message models shared by the proxy and the conversation manager."""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


Role = Literal["user", "assistant", "system"]


class StructuredReply(BaseModel):
    """Suggested replacement text for the section being edited.

    Produced when the proxy decides the user asked for a rewrite or fix.
    Serialized on the wire as ``{"newContent": "..."}``.
    """

    new_content: str = Field(
        ...,
        alias="newContent",
        description="Replacement text the caller may apply to the section"
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Message(BaseModel):
    """One turn in a conversation."""

    role: Role = Field(..., description="Who produced the turn")

    content: Union[str, StructuredReply] = Field(
        ...,
        description="Plain text, or a structured edit suggestion"
    )

    original_prompt: Optional[str] = Field(
        default=None,
        description="Raw user text when the stored content is a display override"
    )

    model_config = ConfigDict(frozen=True)

    def to_payload(self) -> dict:
        """Render the turn in chat-completion wire format (role and text only)."""
        content = self.content
        if isinstance(content, StructuredReply):
            content = content.new_content
        return {"role": self.role, "content": content}

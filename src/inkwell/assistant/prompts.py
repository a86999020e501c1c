"""Prompt composition for the writing assistant.

Client side: mode templates that turn a bit of text into an instruction
(`compose_prompt`), and the whole-project context used by the project
assistant (`compose_project_question`).

Server side: the grounding system message built from the caller's section
content (`build_context_message`), and the rewrite/fix intent check that
decides whether a reply is wrapped as a structured edit suggestion.
"""

import json
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

if TYPE_CHECKING:
    from inkwell.models.project import Project


DEFAULT_MODE = "rewrite"

MODE_INSTRUCTIONS = {
    "brainstorm": "Brainstorm ideas for the following text:",
    "outline": "Create an outline for the following text:",
    "rewrite": "Rewrite the following text to improve clarity and style:",
    "summarize": "Summarize the following text:",
    "fix": "Correct the grammar and spelling in the following text:",
}

# Substrings in the last user turn that ask for an edit of the text itself
EDIT_INTENT_KEYWORDS = ("rewrite", "fix")

CONTEXT_PREAMBLE = (
    "The user is working on the following content. "
    "Use it as context when answering:"
)


def instruction_for(mode: Optional[str]) -> str:
    """Instruction sentence for a mode; unknown modes get the rewrite one."""
    return MODE_INSTRUCTIONS.get(mode or DEFAULT_MODE, MODE_INSTRUCTIONS[DEFAULT_MODE])


def compose_prompt(text: str, mode: Optional[str] = DEFAULT_MODE) -> str:
    """
    Build the user prompt for a mode.

    Args:
        text: Text the user wants help with
        mode: One of brainstorm, outline, rewrite, summarize, fix

    Returns:
        ``instruction + "\\n\\n" + text``

    Example:
        >>> compose_prompt("Once upon a time", mode="brainstorm")
        'Brainstorm ideas for the following text:\\n\\nOnce upon a time'
    """
    return f"{instruction_for(mode)}\n\n{text}"


def build_context_message(section_content: Optional[str]) -> Optional[dict]:
    """System message carrying the caller's section content, or None if empty."""
    if not section_content or not section_content.strip():
        return None
    return {
        "role": "system",
        "content": f"{CONTEXT_PREAMBLE}\n\n{section_content}",
    }


def with_context(
    messages: list[dict],
    section_content: Optional[str]
) -> list[dict]:
    """Prepend the context system message (if any) to the outbound messages."""
    context_message = build_context_message(section_content)
    if context_message is None:
        return list(messages)
    return [context_message, *messages]


def last_user_text(messages: Iterable[Mapping[str, Any]]) -> str:
    """Lower-cased text of the last user message, or "" if there is none."""
    for message in reversed(list(messages)):
        if isinstance(message, Mapping) and message.get("role") == "user":
            content = message.get("content")
            return content.lower() if isinstance(content, str) else ""
    return ""


def has_edit_intent(messages: Iterable[Mapping[str, Any]]) -> bool:
    """
    Guess whether the last user turn asks for the text to be rewritten or fixed.

    This is a substring heuristic. Callers that know what they want should
    send an explicit ``expectStructuredEdit`` flag instead.
    """
    text = last_user_text(messages)
    return any(keyword in text for keyword in EDIT_INTENT_KEYWORDS)


def wrap_structured_reply(text: str) -> str:
    """Serialize reply text as ``{"newContent": ...}`` (compact JSON)."""
    return json.dumps({"newContent": text}, separators=(",", ":"), ensure_ascii=False)


def project_context(project: "Project") -> str:
    """Render every section of a project as one block of text."""
    return "".join(
        f"Chapter: {section.name}\n\n{section.content or ''}\n\n---\n\n"
        for section in project.sections
    )


def compose_project_question(project: "Project", question: str) -> str:
    """Wrap a question about a whole project together with all its sections."""
    return (
        f'This is a project named "{project.name}". Here are all its sections:\n\n'
        f"{project_context(project)}\n\nQuestion: {question}"
    )

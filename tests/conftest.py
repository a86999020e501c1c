"""Shared test fixtures for all test modules."""

import pytest

from inkwell.models.config import LLMConfig
from inkwell.services.exceptions import LLMAPIError, ProxyError


class FakeLLMClient:
    """Stands in for ChatCompletionClient; records every message list it gets."""

    def __init__(self, content="Here is the corrected text.", error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def complete(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return {"role": "assistant", "content": self.content}


class FakeProxyClient:
    """Stands in for AssistantProxyClient; replies from a queue."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    async def send(self, messages, section_content=None, expect_structured_edit=None):
        self.calls.append({
            "messages": messages,
            "section_content": section_content,
            "expect_structured_edit": expect_structured_edit,
        })
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, Exception):
            raise reply
        return {"role": "assistant", "content": reply}


@pytest.fixture
def llm_config():
    """Test LLM configuration."""
    return LLMConfig(
        endpoint="https://api.test.com/v1",
        api_key="test-key",
        model="test-model",
    )


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def failing_llm():
    return FakeLLMClient(error=LLMAPIError("You exceeded your current quota", status_code=429))


@pytest.fixture
def fake_proxy():
    return FakeProxyClient()


@pytest.fixture
def proxy_error():
    return ProxyError("You exceeded your current quota", status_code=500)

"""Unit tests for ConversationManager."""

import asyncio

import pytest

from inkwell.assistant.conversation import (
    MAX_HISTORY,
    ConversationManager,
    parse_reply_content,
)
from inkwell.models.message import Message, StructuredReply
from inkwell.services.exceptions import ProxyError


class TestParseReplyContent:
    """Test interpretation of proxy reply content."""

    def test_plain_text(self):
        assert parse_reply_content("Just some advice.") == "Just some advice."

    def test_structured(self):
        """Test newContent JSON becomes a StructuredReply."""
        reply = parse_reply_content('{"newContent":"Fixed text."}')
        assert reply == StructuredReply(new_content="Fixed text.")

    @pytest.mark.parametrize("content", [
        '{"newContent": ""}',
        '{"other": "x"}',
        '["newContent"]',
        '42',
        '{"newContent": 5}',
        '{not json',
    ])
    def test_unusable_json_is_plain_text(self, content):
        """Test JSON without a usable newContent falls back to the raw text."""
        assert parse_reply_content(content) == content

    def test_none_content(self):
        assert parse_reply_content(None) == ""


class TestAsk:
    """Test ask() history and payload handling."""

    @pytest.fixture
    def manager(self, fake_proxy):
        return ConversationManager(fake_proxy)

    @pytest.mark.asyncio
    async def test_ask_records_user_and_assistant_turns(self, manager, fake_proxy):
        """Test a successful ask stores the prompt and the reply."""
        fake_proxy.replies = ["A brighter opening."]

        reply = await manager.ask("It was a dark night.", mode="rewrite")

        assert reply == "A brighter opening."
        assert manager.history == [
            Message(role="user", content="Rewrite the following text to improve clarity and style:\n\nIt was a dark night."),
            Message(role="assistant", content="A brighter opening."),
        ]
        assert manager.response == "A brighter opening."
        assert manager.error is None
        assert manager.loading is False
        assert manager.last_prompt == "It was a dark night."

    @pytest.mark.asyncio
    async def test_outbound_is_pre_call_history_plus_prompt(self, manager, fake_proxy):
        """Test the new user turn is not duplicated in the outbound list."""
        await manager.ask("hello", mode="summarize")

        outbound = fake_proxy.calls[0]["messages"]
        assert outbound == [
            {"role": "user", "content": "Summarize the following text:\n\nhello"},
        ]

    @pytest.mark.asyncio
    async def test_brainstorm_outbound_prefix(self, manager, fake_proxy):
        """Test brainstorm mode shapes the outbound user content."""
        await manager.ask("a haunted mill", mode="brainstorm")

        content = fake_proxy.calls[0]["messages"][-1]["content"]
        assert content.startswith("Brainstorm ideas for the following text:\n\n")

    @pytest.mark.asyncio
    async def test_second_ask_includes_first_exchange(self, manager, fake_proxy):
        """Test consecutive asks carry earlier turns in order."""
        fake_proxy.replies = ["first reply", "second reply"]

        await manager.ask("first", mode="outline")
        await manager.ask("second", mode="outline")

        outbound = fake_proxy.calls[1]["messages"]
        assert outbound == [
            {"role": "user", "content": "Create an outline for the following text:\n\nfirst"},
            {"role": "assistant", "content": "first reply"},
            {"role": "user", "content": "Create an outline for the following text:\n\nsecond"},
        ]

    @pytest.mark.asyncio
    async def test_display_message_stored_but_prompt_sent(self, manager, fake_proxy):
        """Test display_message changes the stored turn only."""
        await manager.ask("long templated context", display_message="Who is Anna?", mode="summarize")

        assert manager.history[0].content == "Who is Anna?"
        assert manager.history[0].original_prompt == "long templated context"
        assert fake_proxy.calls[0]["messages"][-1]["content"] == (
            "Summarize the following text:\n\nlong templated context"
        )

    @pytest.mark.asyncio
    async def test_display_message_reaches_next_payload(self, manager, fake_proxy):
        """Test later payloads carry the display text, not the templated prompt."""
        await manager.ask("context blob", display_message="Short question")
        await manager.ask("follow-up")

        assert fake_proxy.calls[1]["messages"][0] == {"role": "user", "content": "Short question"}

    @pytest.mark.asyncio
    async def test_section_content_passed_through_not_stored(self, manager, fake_proxy):
        """Test section content goes to the proxy but never into history."""
        await manager.ask("tighten this", section_content="<p>Chapter text</p>")

        assert fake_proxy.calls[0]["section_content"] == "<p>Chapter text</p>"
        assert all("Chapter text" not in str(m.content) for m in manager.history)

    @pytest.mark.asyncio
    async def test_expect_structured_edit_passed_through(self, manager, fake_proxy):
        await manager.ask("text", expect_structured_edit=True)
        assert fake_proxy.calls[0]["expect_structured_edit"] is True

    @pytest.mark.asyncio
    async def test_structured_reply_returned_and_text_stored(self, manager, fake_proxy):
        """Test structured replies are returned whole but stored as text."""
        fake_proxy.replies = ['{"newContent":"They\'re going home."}']

        reply = await manager.ask("Their going home.", mode="fix")

        assert reply == StructuredReply(new_content="They're going home.")
        assert manager.response == reply
        assert manager.history[-1] == Message(role="assistant", content="They're going home.")

    @pytest.mark.asyncio
    async def test_history_capped(self, manager, fake_proxy):
        """Test history never exceeds the cap across many asks."""
        for i in range(10):
            await manager.ask(f"message {i}")
            assert len(manager.history) <= MAX_HISTORY

        assert len(manager.history) == MAX_HISTORY
        # Oldest evicted first: the last stored user turn is the newest message
        assert manager.history[-2].content.endswith("message 9")
        assert manager.history[0].content.endswith("message 7")

    @pytest.mark.asyncio
    async def test_outbound_bounded_by_cap(self, manager, fake_proxy):
        """Test outbound lists hold at most the cap plus the new prompt."""
        for i in range(8):
            await manager.ask(f"m{i}")

        assert all(len(call["messages"]) <= MAX_HISTORY + 1 for call in fake_proxy.calls)

    @pytest.mark.asyncio
    async def test_custom_cap(self, fake_proxy):
        manager = ConversationManager(fake_proxy, max_history=2)
        await manager.ask("a")
        await manager.ask("b")
        assert len(manager.history) == 2
        assert manager.history[0].role == "user"
        assert manager.history[0].content.endswith("b")

    def test_invalid_cap(self, fake_proxy):
        with pytest.raises(ValueError):
            ConversationManager(fake_proxy, max_history=0)


class TestAskFailures:
    """Test that failures come back as warning replies."""

    @pytest.fixture
    def manager(self, fake_proxy):
        return ConversationManager(fake_proxy)

    @pytest.mark.asyncio
    async def test_proxy_error_becomes_warning(self, manager, fake_proxy, proxy_error):
        """Test a proxy error is returned, not raised."""
        fake_proxy.replies = [proxy_error]

        reply = await manager.ask("hello")

        assert reply == "⚠️ You exceeded your current quota"
        assert manager.error == "You exceeded your current quota"
        assert manager.response == reply
        assert manager.loading is False

    @pytest.mark.asyncio
    async def test_failed_ask_keeps_user_turn_only(self, manager, fake_proxy, proxy_error):
        """Test no assistant turn is stored on failure."""
        fake_proxy.replies = [proxy_error]

        await manager.ask("hello")

        assert [m.role for m in manager.history] == ["user"]

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_warning(self, manager, fake_proxy):
        """Test any exception degrades to a warning reply."""
        fake_proxy.replies = [RuntimeError("boom")]

        reply = await manager.ask("hello")

        assert reply == "⚠️ boom"

    @pytest.mark.asyncio
    async def test_empty_error_message_uses_default(self, manager, fake_proxy):
        fake_proxy.replies = [ProxyError("")]

        reply = await manager.ask("hello")

        assert reply == "⚠️ Error reaching AI backend"

    @pytest.mark.asyncio
    async def test_error_cleared_by_next_success(self, manager, fake_proxy, proxy_error):
        fake_proxy.replies = [proxy_error, "fine now"]

        await manager.ask("one")
        await manager.ask("two")

        assert manager.error is None
        assert manager.response == "fine now"

    @pytest.mark.asyncio
    async def test_loading_true_during_request(self, fake_proxy):
        """Test loading is set while the request is in flight."""
        seen = []

        class SlowProxy:
            async def send(self, messages, section_content=None, expect_structured_edit=None):
                seen.append(manager.loading)
                return {"role": "assistant", "content": "done"}

        manager = ConversationManager(SlowProxy())
        await manager.ask("hi")

        assert seen == [True]
        assert manager.loading is False


class TestRegenerate:
    """Test regenerate()."""

    @pytest.fixture
    def manager(self, fake_proxy):
        return ConversationManager(fake_proxy)

    @pytest.mark.asyncio
    async def test_regenerate_without_prompt_is_noop(self, manager, fake_proxy):
        """Test regenerate returns None and leaves state alone with no prior prompt."""
        result = await manager.regenerate()

        assert result is None
        assert manager.history == []
        assert fake_proxy.calls == []

    @pytest.mark.asyncio
    async def test_regenerate_replaces_last_reply(self, manager, fake_proxy):
        """Test regeneration swaps the previous assistant reply for a new one."""
        fake_proxy.replies = ["first try", "second try"]

        await manager.ask("Write a title", mode="brainstorm")
        reply = await manager.regenerate()

        assert reply == "second try"
        assert [m.role for m in manager.history] == ["user", "assistant"]
        assert manager.history[-1].content == "second try"

    @pytest.mark.asyncio
    async def test_regenerate_outbound_drops_last_entry(self, manager, fake_proxy):
        """Test the outbound list is history minus its last entry plus the prompt."""
        fake_proxy.replies = ["first try", "second try"]

        await manager.ask("Write a title", mode="brainstorm")
        await manager.regenerate()

        prompt = "Brainstorm ideas for the following text:\n\nWrite a title"
        assert fake_proxy.calls[1]["messages"] == [
            {"role": "user", "content": prompt},
            {"role": "user", "content": prompt},
        ]

    @pytest.mark.asyncio
    async def test_regenerate_after_failure(self, manager, fake_proxy, proxy_error):
        """Test regenerating after an error re-sends only the prompt."""
        fake_proxy.replies = [proxy_error, "recovered"]

        await manager.ask("hello", mode="summarize")
        reply = await manager.regenerate()

        assert reply == "recovered"
        assert fake_proxy.calls[1]["messages"] == [
            {"role": "user", "content": "Summarize the following text:\n\nhello"},
        ]
        assert [m.role for m in manager.history] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_regenerate_reuses_section_content(self, manager, fake_proxy):
        await manager.ask("tighten", section_content="Section body", mode="fix")
        await manager.regenerate()

        assert fake_proxy.calls[1]["section_content"] == "Section body"

    @pytest.mark.asyncio
    async def test_regenerate_keeps_last_prompt(self, manager, fake_proxy):
        await manager.ask("original")
        await manager.regenerate()
        assert manager.last_prompt == "original"


class TestClearHistory:
    """Test clear_history()."""

    @pytest.mark.asyncio
    async def test_clear_resets_everything(self, fake_proxy, proxy_error):
        """Test clearing empties history and resets error, response and prompt."""
        fake_proxy.replies = ["ok", proxy_error]
        manager = ConversationManager(fake_proxy)
        await manager.ask("one")
        await manager.ask("two")

        manager.clear_history()

        assert manager.history == []
        assert manager.error is None
        assert manager.response is None
        assert manager.last_prompt is None
        assert await manager.regenerate() is None

    def test_clear_on_fresh_manager(self, fake_proxy):
        manager = ConversationManager(fake_proxy)
        manager.clear_history()
        assert manager.history == []


class TestConcurrentAsks:
    """Test that overlapping calls on one manager are serialized."""

    @pytest.mark.asyncio
    async def test_second_call_sees_first_exchange(self):
        """Test a call started mid-flight waits and then includes the first turn."""
        release = asyncio.Event()
        calls = []

        class GatedProxy:
            async def send(self, messages, section_content=None, expect_structured_edit=None):
                calls.append(messages)
                if len(calls) == 1:
                    await release.wait()
                return {"role": "assistant", "content": f"reply {len(calls)}"}

        manager = ConversationManager(GatedProxy())
        first = asyncio.create_task(manager.ask("first"))
        await asyncio.sleep(0)
        second = asyncio.create_task(manager.ask("second"))
        await asyncio.sleep(0)

        assert len(calls) == 1
        release.set()
        assert await first == "reply 1"
        assert await second == "reply 2"

        assert [m["role"] for m in calls[1]] == ["user", "assistant", "user"]
        assert [m.role for m in manager.history] == ["user", "assistant", "user", "assistant"]

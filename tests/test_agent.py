"""
Tests for the Agent session: history, event ordering and failure handling.
"""

import pytest
from pydantic import BaseModel

from openrouter_agent.core.agent import Agent, create_agent, parse_tool_arguments
from openrouter_agent.core.errors import MalformedFragment, NetworkFailure
from openrouter_agent.core.tools import Tool
from openrouter_agent.models.events import (
    AssistantMessageAppended,
    ErrorObserved,
    ReasoningUpdated,
    StreamDelta,
    StreamEnded,
    ToolCallObserved,
    ToolResultObserved,
)
from openrouter_agent.models.stream import (
    MessageFragment,
    ReasoningFragment,
    ToolCallFragment,
    ToolResultFragment,
)


class EchoInput(BaseModel):
    text: str


def _echo_tool(name="echo"):
    return Tool(name, "Echo the text back", EchoInput, lambda i: i.text)


def _reply(*texts, item_id="msg_1", final=None):
    """Script streaming the given successive full texts for one message."""

    def script():
        for text in texts:
            yield MessageFragment(id=item_id, text_so_far=text)
        return final if final is not None else (texts[-1] if texts else "")

    return script


@pytest.fixture
def events():
    return []


@pytest.fixture
def make_agent(agent_config, fake_provider_cls, events):
    def factory(*scripts, **config_overrides):
        config = agent_config.model_copy(update=config_overrides)
        provider = fake_provider_cls(*scripts)
        return Agent(config, provider=provider, on_event=events.append), provider

    return factory


class TestAgentState:
    def test_properties_from_config(self, make_agent):
        agent, _ = make_agent(max_steps=3)
        assert agent.model == "test/model"
        assert agent.max_steps == 3
        assert agent.instructions == "Be brief."
        assert agent.tools == []

    def test_get_messages_returns_copy(self, make_agent):
        agent, _ = make_agent(_reply("Hi"))
        agent.send("Hello")
        messages = agent.get_messages()
        messages.clear()
        assert len(agent.get_messages()) == 2

    def test_clear_history(self, make_agent):
        agent, _ = make_agent(_reply("Hi"))
        agent.send("Hello")
        agent.clear_history()
        assert agent.get_messages() == []

    def test_set_instructions_used_by_next_call(self, make_agent):
        agent, provider = make_agent(_reply("Ok"))
        agent.set_instructions("Answer in French.")
        agent.send("Hello")
        assert provider.requests[0].instructions == "Answer in French."

    def test_add_tool_rejects_duplicates(self, make_agent):
        agent, _ = make_agent()
        agent.add_tool(_echo_tool())
        with pytest.raises(ValueError, match="already registered"):
            agent.add_tool(_echo_tool())

    def test_config_is_not_shared(self, agent_config, fake_provider_cls):
        agent = Agent(agent_config, provider=fake_provider_cls())
        agent.set_instructions("Changed")
        assert agent_config.instructions == "Be brief."

    def test_create_agent(self, agent_config, fake_provider_cls):
        agent = create_agent(agent_config, provider=fake_provider_cls())
        assert isinstance(agent, Agent)


class TestSend:
    def test_returns_text_and_records_history(self, make_agent):
        agent, _ = make_agent(_reply("Hel", "Hello!"))
        assert agent.send("Hi") == "Hello!"
        messages = agent.get_messages()
        assert [(m.role, m.content) for m in messages] == [
            ("user", "Hi"),
            ("assistant", "Hello!"),
        ]

    def test_event_order(self, make_agent, events):
        agent, _ = make_agent(_reply("Hel", "Hello"))
        agent.send("Hi")
        assert [e.type for e in events] == [
            "message:user",
            "thinking:start",
            "stream:start",
            "stream:delta",
            "stream:delta",
            "stream:end",
            "message:assistant",
            "thinking:end",
        ]

    def test_deltas_and_accumulated(self, make_agent, events):
        agent, _ = make_agent(_reply("Hel", "Hel", "Hello"))
        agent.send("Hi")
        deltas = [e for e in events if isinstance(e, StreamDelta)]
        assert [d.delta for d in deltas] == ["Hel", "lo"]
        assert deltas[-1].accumulated == "Hello"
        ended = next(e for e in events if isinstance(e, StreamEnded))
        assert ended.full_text == "Hello"

    def test_rewritten_message_marks_delta_replaced(self, make_agent, events):
        agent, _ = make_agent(_reply("Hello", "Help"))
        assert agent.send("Hi") == "Help"
        deltas = [e for e in events if isinstance(e, StreamDelta)]
        assert [(d.delta, d.replaced) for d in deltas] == [("Hello", False), ("Help", True)]

    def test_falls_back_to_final_text(self, make_agent, events):
        agent, _ = make_agent(_reply(final="Synthesized answer"))
        assert agent.send("Hi") == "Synthesized answer"
        assert not any(isinstance(e, StreamDelta) for e in events)
        assert agent.get_messages()[-1].content == "Synthesized answer"

    def test_request_carries_session_state(self, make_agent):
        agent, provider = make_agent(_reply("One"), _reply("Two"), max_steps=4)
        agent.add_tool(_echo_tool())
        agent.send("First")
        agent.send("Second")

        request = provider.requests[1]
        assert request.model == "test/model"
        assert request.instructions == "Be brief."
        assert request.step_budget == 4
        assert [t.name for t in request.tools] == ["echo"]
        assert [(m.role, m.content) for m in request.input] == [
            ("user", "First"),
            ("assistant", "One"),
            ("user", "Second"),
        ]

    def test_no_tools_sends_none(self, make_agent):
        agent, provider = make_agent(_reply("Ok"))
        agent.send("Hi")
        assert provider.requests[0].tools is None

    def test_cancel_signal_is_forwarded(self, make_agent):
        import threading

        agent, provider = make_agent(_reply("Ok"))
        cancel = threading.Event()
        agent.send("Hi", cancel=cancel)
        assert provider.cancels[0] is cancel

    def test_tool_events(self, make_agent, events):
        def script():
            yield ToolCallFragment(id="call_1", name="echo", status="pending")
            yield ToolCallFragment(
                id="call_1", name="echo", arguments_json='{"text": "hey"}', status="completed"
            )
            yield ToolResultFragment(call_id="call_1", output="hey")
            yield MessageFragment(id="msg_2", text_so_far="Echoed: hey")
            return "Echoed: hey"

        agent, _ = make_agent(script)
        agent.send("Echo hey")

        calls = [e for e in events if isinstance(e, ToolCallObserved)]
        results = [e for e in events if isinstance(e, ToolResultObserved)]
        assert len(calls) == 1
        assert calls[0].name == "echo"
        assert calls[0].arguments == {"text": "hey"}
        assert results[0].call_id == "call_1"
        assert results[0].output == "hey"

        types = [e.type for e in events]
        assert types.index("tool:call") < types.index("tool:result") < types.index("stream:delta")

    def test_empty_arguments_parse_as_empty_object(self, make_agent, events):
        def script():
            yield ToolCallFragment(id="call_1", name="now", status="completed")
            return "done"

        agent, _ = make_agent(script)
        agent.send("Time?")
        call = next(e for e in events if isinstance(e, ToolCallObserved))
        assert call.arguments == {}

    def test_malformed_arguments_do_not_abort(self, make_agent, events):
        def script():
            yield ToolCallFragment(
                id="call_1", name="echo", arguments_json="{not json", status="completed"
            )
            yield MessageFragment(id="msg_1", text_so_far="Still answered")
            return "Still answered"

        agent, _ = make_agent(script)
        assert agent.send("Hi") == "Still answered"

        errors = [e for e in events if isinstance(e, ErrorObserved)]
        assert len(errors) == 1
        assert isinstance(errors[0].error, MalformedFragment)
        assert not any(isinstance(e, ToolCallObserved) for e in events)
        assert agent.get_messages()[-1].content == "Still answered"

    def test_reasoning_is_separate(self, make_agent, events):
        def script():
            yield ReasoningFragment(id="rs_1", text_so_far="Thinking")
            yield ReasoningFragment(id="rs_1", text_so_far="Thinking hard")
            yield MessageFragment(id="msg_1", text_so_far="42")
            return "42"

        agent, _ = make_agent(script)
        assert agent.send("Answer?") == "42"
        reasoning = [e.text for e in events if isinstance(e, ReasoningUpdated)]
        assert reasoning == ["Thinking", "Thinking hard"]
        assert agent.get_messages()[-1].content == "42"


class TestSendFailure:
    def test_failure_mid_stream_keeps_user_message(self, make_agent, events):
        def broken():
            yield MessageFragment(id="msg_1", text_so_far="Partial")
            raise NetworkFailure("connection dropped")

        agent, _ = make_agent(broken)
        with pytest.raises(NetworkFailure):
            agent.send("Hello")

        messages = agent.get_messages()
        assert [(m.role, m.content) for m in messages] == [("user", "Hello")]
        assert not any(isinstance(e, AssistantMessageAppended) for e in events)
        assert not any(isinstance(e, StreamEnded) for e in events)

        error = next(e for e in events if isinstance(e, ErrorObserved))
        assert "connection dropped" in error.summary
        assert events[-1].type == "thinking:end"

    def test_retry_resends_pending_user_message(self, make_agent):
        def broken():
            raise NetworkFailure("down")
            yield  # pragma: no cover

        agent, provider = make_agent(broken, _reply("Back online"))
        with pytest.raises(NetworkFailure):
            agent.send("First try")
        agent.send("Second try")

        resent = provider.requests[1].input
        assert [(m.role, m.content) for m in resent] == [
            ("user", "First try"),
            ("user", "Second try"),
        ]
        assert len(agent.get_messages()) == 3

    def test_provider_call_failure(self, agent_config, events):
        class ExplodingProvider:
            def call_model(self, request, cancel=None):
                raise RuntimeError("boom")

        agent = Agent(agent_config, provider=ExplodingProvider(), on_event=events.append)
        with pytest.raises(RuntimeError, match="boom"):
            agent.send("Hi")
        assert [e.type for e in events] == ["message:user", "thinking:start", "error", "thinking:end"]


class TestSendSync:
    def test_no_stream_events(self, make_agent, events):
        agent, _ = make_agent(_reply("Hel", "Hello"))
        assert agent.send_sync("Hi") == "Hello"
        assert [e.type for e in events] == ["message:user", "message:assistant"]
        assert [m.role for m in agent.get_messages()] == ["user", "assistant"]

    def test_failure(self, make_agent, events):
        def broken():
            raise NetworkFailure("down")
            yield  # pragma: no cover

        agent, _ = make_agent(broken)
        with pytest.raises(NetworkFailure):
            agent.send_sync("Hi")
        assert len(agent.get_messages()) == 1
        assert events[-1].type == "error"


class TestParseToolArguments:
    def test_valid(self):
        fragment = ToolCallFragment(id="c", name="n", arguments_json='{"a": [1, 2]}', status="completed")
        assert parse_tool_arguments(fragment) == {"a": [1, 2]}

    def test_invalid(self):
        fragment = ToolCallFragment(id="c", name="n", arguments_json="{", status="completed")
        with pytest.raises(MalformedFragment) as exc_info:
            parse_tool_arguments(fragment)
        assert exc_info.value.fragment_id == "c"
        assert exc_info.value.raw == "{"

"""Unit tests for the orchestration loop."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from toolweave_server.errors import (
    LLMRequestError,
    ProtocolError,
    ReadinessError,
    RequestTimeoutError,
    ServerUnavailableError,
)
from toolweave_server.services import (
    DEFAULT_SYSTEM_PROMPT,
    ERROR_MARKER,
    RESULT_MARKER,
    Orchestrator,
)
from toolweave_server.tool_servers import ContentItem, ResultEnvelope


def _envelope(text: str) -> ResultEnvelope:
    return ResultEnvelope(content=[ContentItem(type="text", text=text)])


DIRECTIVE = '<execute_query>{"server": "graph", "tool": "query", "arguments": {"path": "/users"}}</execute_query>'


@pytest.fixture
def llm():
    """Mock LLM provider."""
    provider = MagicMock()
    provider.chat = AsyncMock()
    return provider


@pytest.fixture
def supervisor():
    """Mock tool server supervisor."""
    mock = MagicMock()
    mock.call_tool = AsyncMock(return_value=_envelope('Result:\n\n{"value": [{"id": 1}]}'))
    mock.available_servers.return_value = ["graph"]
    return mock


@pytest.mark.asyncio
async def test_reply_without_directives_is_final(llm, supervisor):
    """Test a turn where the model needs no tools."""
    llm.chat.return_value = "Paris."
    orchestrator = Orchestrator(llm, supervisor)

    result = await orchestrator.run_turn([{"role": "user", "content": "Capital of France?"}])

    assert result.analysis == "Paris."
    assert result.final_response == "Paris."
    assert result.rounds == 1
    assert result.tool_results == []
    assert result.round_limit_reached is False
    supervisor.call_tool.assert_not_called()


@pytest.mark.asyncio
async def test_default_system_prompt_is_prepended(llm, supervisor):
    """Test that a conversation without a system message gets one."""
    llm.chat.return_value = "ok"
    orchestrator = Orchestrator(llm, supervisor)

    await orchestrator.run_turn([{"role": "user", "content": "hi"}])

    sent = llm.chat.call_args.args[0]
    assert sent[0]["role"] == "system"
    assert sent[0]["content"].startswith(DEFAULT_SYSTEM_PROMPT)
    assert "Available tool servers: graph." in sent[0]["content"]
    assert sent[1] == {"role": "user", "content": "hi"}


@pytest.mark.asyncio
async def test_existing_system_prompt_is_kept(llm, supervisor):
    """Test that a caller-supplied system message is not replaced."""
    llm.chat.return_value = "ok"
    orchestrator = Orchestrator(llm, supervisor)

    await orchestrator.run_turn(
        [{"role": "system", "content": "custom"}, {"role": "user", "content": "hi"}]
    )

    sent = llm.chat.call_args.args[0]
    assert [m["content"] for m in sent] == ["custom", "hi"]


@pytest.mark.asyncio
async def test_directive_is_executed_and_result_woven_in(llm, supervisor):
    """Test one tool round followed by a final answer."""
    llm.chat.side_effect = [f"Looking it up. {DIRECTIVE} One moment.", "There is 1 user."]
    orchestrator = Orchestrator(llm, supervisor)

    result = await orchestrator.run_turn([{"role": "user", "content": "How many users?"}])

    supervisor.call_tool.assert_awaited_once_with("graph", "query", {"path": "/users"}, timeout=None)
    assert result.analysis.startswith("Looking it up.")
    assert result.final_response == "There is 1 user."
    assert result.rounds == 2
    [tool_result] = result.tool_results
    assert tool_result.success is True
    assert tool_result.data == {"value": [{"id": 1}]}
    assert tool_result.round == 1

    # Second round sees the assembled reply and the result blocks
    second_call = llm.chat.call_args_list[1].args[0]
    assert second_call[-2]["role"] == "assistant"
    assert DIRECTIVE + "\n\n" + RESULT_MARKER in second_call[-2]["content"]
    assert second_call[-2]["content"].endswith(" One moment.")
    assert second_call[-1]["role"] == "tool"
    assert second_call[-1]["content"].startswith(RESULT_MARKER)


@pytest.mark.asyncio
async def test_without_incorporation_assembled_reply_is_final(llm, supervisor):
    """Test that result blocks stay in the reply when not fed back."""
    llm.chat.return_value = f"Here: {DIRECTIVE}"
    orchestrator = Orchestrator(llm, supervisor, incorporate_results=False)

    result = await orchestrator.run_turn([{"role": "user", "content": "q"}])

    assert llm.chat.await_count == 1
    assert result.final_response.startswith(f"Here: {DIRECTIVE}\n\n{RESULT_MARKER}")
    assert "Found **1** items:" in result.final_response


@pytest.mark.asyncio
async def test_multiple_directives_run_left_to_right(llm, supervisor):
    """Test that each directive gets its own block, in order."""
    second = DIRECTIVE.replace("/users", "/groups")
    llm.chat.return_value = f"A {DIRECTIVE} B {second} C"
    orchestrator = Orchestrator(llm, supervisor, incorporate_results=False)

    result = await orchestrator.run_turn([{"role": "user", "content": "q"}])

    paths = [call.args[2]["path"] for call in supervisor.call_tool.await_args_list]
    assert paths == ["/users", "/groups"]
    assert result.final_response.count(RESULT_MARKER) == 2
    assert result.final_response.index("/groups") > result.final_response.index(RESULT_MARKER)
    assert result.final_response.endswith(" C")


@pytest.mark.parametrize(
    "failure,expected",
    [
        (ServerUnavailableError("graph", "degraded"), "server unavailable"),
        (RequestTimeoutError("no reply within 5s"), "no reply within 5s"),
        (ProtocolError({"code": 404, "message": "Resource not found"}), "Resource not found"),
    ],
)
@pytest.mark.asyncio
async def test_tool_failures_become_error_blocks(llm, supervisor, failure, expected):
    """Test that tool failures degrade the block instead of aborting the turn."""
    supervisor.call_tool.side_effect = failure
    llm.chat.side_effect = [f"Try {DIRECTIVE}", "The tool could not be reached."]
    orchestrator = Orchestrator(llm, supervisor)

    result = await orchestrator.run_turn([{"role": "user", "content": "q"}])

    [tool_result] = result.tool_results
    assert tool_result.success is False
    assert expected in tool_result.error
    tool_message = llm.chat.call_args_list[1].args[0][-1]
    assert tool_message["content"].startswith(ERROR_MARKER)
    assert result.final_response == "The tool could not be reached."


@pytest.mark.asyncio
async def test_unparseable_tool_result_becomes_error_block(llm, supervisor):
    """Test that a result without JSON is reported as an error block."""
    supervisor.call_tool.return_value = _envelope("nothing structured")
    llm.chat.return_value = f"Try {DIRECTIVE}"
    orchestrator = Orchestrator(llm, supervisor, incorporate_results=False)

    result = await orchestrator.run_turn([{"role": "user", "content": "q"}])

    assert result.tool_results[0].success is False
    assert ERROR_MARKER in result.final_response


@pytest.mark.asyncio
async def test_is_error_envelope_becomes_error_block(llm, supervisor):
    """Test that an envelope flagged isError is a failure."""
    supervisor.call_tool.return_value = ResultEnvelope(
        content=[ContentItem(type="text", text="quota exceeded")], is_error=True
    )
    llm.chat.return_value = f"Try {DIRECTIVE}"
    orchestrator = Orchestrator(llm, supervisor, incorporate_results=False)

    result = await orchestrator.run_turn([{"role": "user", "content": "q"}])

    assert result.tool_results[0].error == "quota exceeded"
    assert f"{ERROR_MARKER} quota exceeded" in result.final_response


@pytest.mark.asyncio
async def test_invalid_directive_is_not_sent(llm, supervisor):
    """Test that a malformed directive produces an error block only."""
    llm.chat.return_value = "<execute_query>{oops}</execute_query>"
    orchestrator = Orchestrator(llm, supervisor, incorporate_results=False)

    result = await orchestrator.run_turn([{"role": "user", "content": "q"}])

    supervisor.call_tool.assert_not_called()
    assert "Invalid directive" in result.tool_results[0].error
    assert ERROR_MARKER in result.final_response


@pytest.mark.asyncio
async def test_round_limit_returns_best_partial_response(llm, supervisor):
    """Test that the loop stops after max_rounds model calls."""
    llm.chat.return_value = f"Again {DIRECTIVE}"
    orchestrator = Orchestrator(llm, supervisor, max_rounds=2)

    result = await orchestrator.run_turn([{"role": "user", "content": "q"}])

    assert llm.chat.await_count == 2
    assert result.rounds == 2
    assert result.round_limit_reached is True
    assert RESULT_MARKER in result.final_response
    assert [r.round for r in result.tool_results] == [1, 2]


@pytest.mark.asyncio
async def test_first_round_failure_propagates(llm, supervisor):
    """Test that a failing first model call is raised to the caller."""
    llm.chat.side_effect = ReadinessError("OpenAI API key is not configured")
    orchestrator = Orchestrator(llm, supervisor)

    with pytest.raises(ReadinessError):
        await orchestrator.run_turn([{"role": "user", "content": "q"}])


@pytest.mark.asyncio
async def test_later_round_failure_returns_partial_response(llm, supervisor):
    """Test that a failure after round 1 keeps the assembled reply."""
    llm.chat.side_effect = [f"Try {DIRECTIVE}", LLMRequestError("backend down")]
    orchestrator = Orchestrator(llm, supervisor)

    result = await orchestrator.run_turn([{"role": "user", "content": "q"}])

    assert result.rounds == 1
    assert result.final_response.startswith(f"Try {DIRECTIVE}\n\n{RESULT_MARKER}")
    assert result.round_limit_reached is False


@pytest.mark.asyncio
async def test_shorthand_directive_uses_defaults(llm, supervisor):
    """Test that the query shorthand is routed to the default server and tool."""
    llm.chat.return_value = '<execute_query>{"endpoint": "/users/$count"}</execute_query>'
    orchestrator = Orchestrator(
        llm, supervisor, incorporate_results=False, default_server="graph", default_tool="query"
    )

    await orchestrator.run_turn([{"role": "user", "content": "q"}])

    server, tool, arguments = supervisor.call_tool.await_args.args
    assert (server, tool) == ("graph", "query")
    assert arguments["path"] == "/users/$count"
    assert arguments["apiType"] == "graph"


@pytest.mark.asyncio
async def test_stream_turn_event_order(llm, supervisor):
    """Test the sequence of streamed events."""
    llm.chat.side_effect = [f"Try {DIRECTIVE}", "Done."]
    orchestrator = Orchestrator(llm, supervisor)

    events = [event async for event in orchestrator.stream_turn([{"role": "user", "content": "q"}])]

    assert [event.type for event in events] == ["analysis", "tool_result", "final"]
    assert events[0].data == {"content": f"Try {DIRECTIVE}"}
    assert events[1].data["success"] is True
    assert events[2].data["final_response"] == "Done."


def test_max_rounds_must_be_positive(llm, supervisor):
    """Test that a zero round bound is rejected."""
    with pytest.raises(ValueError):
        Orchestrator(llm, supervisor, max_rounds=0)

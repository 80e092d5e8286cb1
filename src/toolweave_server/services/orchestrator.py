"""Orchestration of one conversational turn.

The orchestrator interleaves LLM generation with tool execution: every reply
is scanned for ``<execute_query>`` directives, each directive is executed
through the supervisor, and a formatted result block is inserted after it.
When results were produced the assembled reply and the result blocks are fed
back to the model for another round, up to ``max_rounds`` model calls.
"""

import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from toolweave_server.errors import ParseError, ToolweaveError
from toolweave_server.llm import LLMProvider, normalize_messages
from toolweave_server.llm.base import Message
from toolweave_server.services.directives import ExecutionDirective, parse_directives
from toolweave_server.services.response_extractor import extract
from toolweave_server.services.result_formatter import format_error, format_result
from toolweave_server.tool_servers import ToolServerSupervisor

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 3

DEFAULT_SYSTEM_PROMPT = """You are a helpful assistant with access to external tool servers.

When you need data from a tool, emit a directive containing a single JSON object:

<execute_query>{"server": "<server name>", "tool": "<tool name>", "arguments": {...}}</execute_query>

For directory queries you may use the short form:

<execute_query>{"endpoint": "/users", "method": "get", "params": {"$top": 5}}</execute_query>

Each directive is executed and its result is inserted after it, marked with
**Query Result:** or **Query Error:**. Use the results to answer the user.
Do not invent results for directives you have not seen executed."""


@dataclass
class ToolResult:
    """Outcome of executing one directive."""

    server: str | None
    tool: str | None
    arguments: dict[str, Any]
    success: bool
    data: Any = None
    error: str | None = None
    round: int = 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class OrchestrationResult:
    """Everything produced by one turn.

    Attributes:
        analysis: The model's first reply, before any tool execution
        tool_results: Every directive outcome, in execution order
        final_response: The last assembled reply
        rounds: Number of model calls that completed
        round_limit_reached: True if the turn stopped at ``max_rounds``
    """

    analysis: str
    tool_results: list[ToolResult] = field(default_factory=list)
    final_response: str = ""
    rounds: int = 0
    round_limit_reached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis": self.analysis,
            "tool_results": [result.to_dict() for result in self.tool_results],
            "final_response": self.final_response,
            "rounds": self.rounds,
            "round_limit_reached": self.round_limit_reached,
        }


@dataclass
class OrchestrationEvent:
    """Progress event emitted by ``stream_turn``.

    ``type`` is one of "analysis", "tool_result" or "final".
    """

    type: str
    data: dict[str, Any]


def assemble_reply(text: str, directives: Sequence[ExecutionDirective], blocks: Sequence[str]) -> str:
    """Insert each result block right after its directive's closing tag."""
    pieces = []
    position = 0
    for directive, block in zip(directives, blocks):
        pieces.append(text[position:directive.end])
        pieces.append(f"\n\n{block}\n")
        position = directive.end
    pieces.append(text[position:])
    return "".join(pieces)


class Orchestrator:
    """Drives conversational turns against one provider and one supervisor."""

    def __init__(
        self,
        llm: LLMProvider,
        supervisor: ToolServerSupervisor,
        *,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        incorporate_results: bool = True,
        default_server: str | None = None,
        default_tool: str | None = None,
        tool_timeout: float | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.llm = llm
        self.supervisor = supervisor
        self.max_rounds = max_rounds
        self.incorporate_results = incorporate_results
        self.default_server = default_server
        self.default_tool = default_tool
        self.tool_timeout = tool_timeout
        self.system_prompt = system_prompt

    def _build_system_prompt(self) -> str:
        servers = self.supervisor.available_servers()
        if not servers:
            return self.system_prompt
        return f"{self.system_prompt}\n\nAvailable tool servers: {', '.join(servers)}."

    def _prepare(self, messages: Sequence[Message]) -> list[dict[str, str]]:
        conversation = normalize_messages(messages)
        if not any(message["role"] == "system" for message in conversation):
            conversation.insert(0, {"role": "system", "content": self._build_system_prompt()})
        return conversation

    async def _execute(self, directive: ExecutionDirective, round_number: int) -> tuple[ToolResult, str]:
        result = ToolResult(
            server=directive.server,
            tool=directive.tool,
            arguments=directive.arguments,
            success=False,
            round=round_number,
        )

        if not directive.is_valid:
            result.error = f"Invalid directive: {directive.error}"
            logger.warning(result.error)
            return result, format_error(result.error)

        try:
            envelope = await self.supervisor.call_tool(
                directive.server,
                directive.tool,
                directive.arguments,
                timeout=self.tool_timeout,
            )
            if envelope.is_error:
                result.error = envelope.text or "Tool reported an error"
            else:
                result.data = extract(envelope)
                result.success = True
        except ParseError as e:
            result.error = f"Could not read tool result: {e}"
        except ToolweaveError as e:
            result.error = str(e)

        if not result.success:
            logger.warning(
                f"Tool call {directive.server}.{directive.tool} failed: {result.error}"
            )
            return result, format_error(result.error)

        logger.info(f"Tool call {directive.server}.{directive.tool} succeeded")
        return result, format_result(result.data)

    async def stream_turn(self, messages: Sequence[Message]) -> AsyncIterator[OrchestrationEvent]:
        """Run one turn, yielding progress events.

        The last event is always "final" and carries the full
        OrchestrationResult.

        Raises:
            ReadinessError, LLMRequestError: If the first model call fails
        """
        conversation = self._prepare(messages)
        analysis: str | None = None
        best_response = ""
        tool_results: list[ToolResult] = []
        rounds = 0
        round_limit_reached = False

        while True:
            try:
                reply = await self.llm.chat(conversation)
            except ToolweaveError as e:
                if rounds == 0:
                    raise
                logger.warning(f"Model call in round {rounds + 1} failed, returning partial response: {e}")
                break
            rounds += 1

            if analysis is None:
                analysis = reply
                yield OrchestrationEvent("analysis", {"content": reply})

            directives = parse_directives(
                reply,
                default_server=self.default_server,
                default_tool=self.default_tool,
            )
            if not directives:
                best_response = reply
                break

            logger.info(f"Round {rounds}: executing {len(directives)} directive(s)")
            blocks = []
            for directive in directives:
                result, block = await self._execute(directive, rounds)
                tool_results.append(result)
                blocks.append(block)
                yield OrchestrationEvent("tool_result", result.to_dict())

            best_response = assemble_reply(reply, directives, blocks)

            if not self.incorporate_results:
                break
            if rounds >= self.max_rounds:
                round_limit_reached = True
                logger.warning(f"Round limit of {self.max_rounds} reached")
                break

            conversation.append({"role": "assistant", "content": best_response})
            conversation.append({"role": "tool", "content": "\n\n".join(blocks)})

        result = OrchestrationResult(
            analysis=analysis or "",
            tool_results=tool_results,
            final_response=best_response,
            rounds=rounds,
            round_limit_reached=round_limit_reached,
        )
        yield OrchestrationEvent("final", result.to_dict())

    async def run_turn(self, messages: Sequence[Message]) -> OrchestrationResult:
        """Run one turn to completion."""
        final: dict[str, Any] | None = None
        async for event in self.stream_turn(messages):
            if event.type == "final":
                final = event.data

        assert final is not None
        return OrchestrationResult(
            analysis=final["analysis"],
            tool_results=[ToolResult(**item) for item in final["tool_results"]],
            final_response=final["final_response"],
            rounds=final["rounds"],
            round_limit_reached=final["round_limit_reached"],
        )

"""Pydantic models for chat API requests and responses.

This module defines the request and response schemas for the orchestrated
chat endpoints, including the SSE event payloads of the streaming endpoint.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from toolweave_server.llm import ConversationMessage


class ChatMessageInput(BaseModel):
    """One message of the conversation sent by the client."""

    role: Literal["system", "user", "assistant", "tool"] = Field(description="Message role")
    content: str = Field(description="Message content")

    def to_message(self) -> ConversationMessage:
        return ConversationMessage(role=self.role, content=self.content)


class ChatRequest(BaseModel):
    """Request body for POST /api/v1/chat and POST /api/v1/chat/stream.

    Either ``message`` or ``messages`` must be given; when both are present
    ``message`` is appended to ``messages`` as a user message.
    """

    message: str | None = Field(default=None, description="A single user message")
    messages: list[ChatMessageInput] = Field(
        default_factory=list,
        description="Conversation history, oldest first",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"message": "How many users are in the directory?"},
                {
                    "messages": [
                        {"role": "user", "content": "List the first five groups"},
                    ]
                },
            ]
        }
    )

    def conversation(self) -> list[ConversationMessage]:
        messages = [item.to_message() for item in self.messages]
        if self.message is not None:
            messages.append(ConversationMessage(role="user", content=self.message))
        return messages


class ToolResultResponse(BaseModel):
    """Outcome of one executed directive."""

    server: str | None = Field(default=None, description="Target tool server")
    tool: str | None = Field(default=None, description="Tool name")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")
    success: bool = Field(description="Whether the call produced a result")
    data: Any = Field(default=None, description="Extracted structured result")
    error: str | None = Field(default=None, description="Failure reason")
    round: int = Field(default=1, description="Orchestration round of the call")


class ChatResponse(BaseModel):
    """Response body for the non-streaming chat endpoint."""

    analysis: str = Field(description="The model's first reply")
    tool_results: list[ToolResultResponse] = Field(
        default_factory=list, description="Executed directives, in order"
    )
    final_response: str = Field(description="Final answer with result blocks woven in")
    rounds: int = Field(description="Number of model calls made")
    round_limit_reached: bool = Field(
        default=False, description="Whether the turn stopped at the round limit"
    )


class AnalysisEvent(BaseModel):
    """SSE event: the model's first reply."""

    content: str


class ErrorEvent(BaseModel):
    """SSE event: the turn failed."""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class DoneEvent(BaseModel):
    """SSE event: the stream is complete."""

    rounds: int = 0

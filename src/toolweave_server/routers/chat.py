"""Chat API endpoints.

This module provides the orchestrated chat endpoints: one conversational turn
with tool execution, returned whole or streamed via SSE.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from toolweave_server.dependencies import get_orchestrator
from toolweave_server.errors import ToolweaveError
from toolweave_server.models.chat import (
    AnalysisEvent,
    ChatRequest,
    ChatResponse,
    DoneEvent,
    ErrorEvent,
)
from toolweave_server.routers.errors import api_error, http_error_for
from toolweave_server.services import Orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


def _require_messages(request_body: ChatRequest) -> list:
    conversation = request_body.conversation()
    if not conversation:
        raise api_error(400, "empty_conversation", "Request contains no messages to process")
    return conversation


@router.post("", response_model=ChatResponse)
async def chat(
    request_body: ChatRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    """Run one orchestrated turn and return the complete result.

    Raises:
        HTTPException: 400 for an empty conversation, 503 if the LLM is not
            ready, 502 if the first LLM call fails
    """
    conversation = _require_messages(request_body)
    logger.info(f"Running chat turn with {len(conversation)} messages")

    try:
        result = await orchestrator.run_turn(conversation)
    except ToolweaveError as e:
        raise http_error_for(e) from e

    logger.info(
        f"Chat turn finished after {result.rounds} round(s), "
        f"{len(result.tool_results)} tool call(s)"
    )
    return ChatResponse.model_validate(result.to_dict())


@router.post("/stream")
async def chat_stream(
    request_body: ChatRequest,
    request: Request,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> EventSourceResponse:
    """Stream one orchestrated turn via Server-Sent Events (SSE).

    SSE Events:
        - analysis: The model's first reply
        - tool_result: Each executed directive
        - final: The complete turn result
        - error: If the turn fails
        - done: Stream is complete
    """
    conversation = _require_messages(request_body)
    logger.info(f"Starting streaming chat turn with {len(conversation)} messages")

    async def event_generator():
        rounds = 0
        try:
            async for event in orchestrator.stream_turn(conversation):
                if await request.is_disconnected():
                    logger.warning("Client disconnected during streaming chat turn")
                    return

                if event.type == "analysis":
                    data = AnalysisEvent(**event.data).model_dump_json()
                elif event.type == "final":
                    rounds = event.data["rounds"]
                    data = ChatResponse.model_validate(event.data).model_dump_json()
                else:
                    data = json.dumps(event.data, default=str)
                yield {"event": event.type, "data": data}

        except ToolweaveError as e:
            logger.error(f"Streaming chat turn failed: {e}")
            http_error = http_error_for(e)
            error = http_error.detail["error"]
            yield {
                "event": "error",
                "data": ErrorEvent(
                    code=error["code"], message=error["message"], details=error["details"]
                ).model_dump_json(),
            }
            return

        yield {"event": "done", "data": DoneEvent(rounds=rounds).model_dump_json()}

    return EventSourceResponse(event_generator())

# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Streaming response handling for the proxy application.

Frame construction and disconnect handling live in GatewayClient; this
wrapper only guarantees that an unexpected failure still reaches the client
as an error frame followed by the terminator.
"""

import json
import logging
from typing import AsyncGenerator

from fastapi.responses import StreamingResponse

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def streaming_response_wrapper(
    response_stream: AsyncGenerator[str, None],
) -> AsyncGenerator[str, None]:
    """Pass SSE frames through, converting unexpected errors into a final frame."""
    try:
        async for chunk_str in response_stream:
            yield chunk_str
    except Exception as e:
        logger.error(f"An error occurred during the response stream: {e}")
        error_payload = {
            "error": {
                "message": f"An unexpected error occurred during the stream: {str(e)}",
                "type": "api_error",
                "code": 500,
            }
        }
        yield f"data: {json.dumps(error_payload)}\n\n"
        yield "data: [DONE]\n\n"


def sse_response(response_stream: AsyncGenerator[str, None]) -> StreamingResponse:
    return StreamingResponse(
        streaming_response_wrapper(response_stream),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
